# importing a workflow module registers its graphs in nodeflow.library.GRAPHS
from . import code_review  # noqa: F401
