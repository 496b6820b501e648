# nodeflow/main.py
import logging
from typing import Any, Dict, Optional

import pydantic
import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import workflows  # noqa: F401  (registers the example graphs)
from .config import LOG_LEVEL
from .library import GRAPHS, get_graph
from .models import RunOptions
from .workflows.code_review import CodeReviewInput

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="nodeflow")

SAMPLE_CODE = (
    "def foo(x):\n    # TODO: fix this\n    if x > 0:\n        print(x)\n\n"
    "def bar(y):\n    for i in range(y):\n        if i % 2 == 0:\n            print(i)\n"
)


class RunPayload(BaseModel):
    input: Any = None
    max_node_visits: Optional[int] = None
    timeout_ms: Optional[int] = None


def _lookup(name: str):
    try:
        return get_graph(name)
    except KeyError:
        raise HTTPException(status_code=404, detail="graph not found")


@app.get("/graphs")
async def list_graphs():
    return {"graphs": sorted(GRAPHS)}


@app.get("/graphs/{name}/structure")
async def get_structure(name: str):
    graph = _lookup(name)
    return {"name": name, "structure": [node.model_dump() for node in graph.get_structure()]}


@app.post("/graphs/{name}/run")
async def run_graph(name: str, payload: RunPayload) -> Dict[str, Any]:
    graph = _lookup(name)
    try:
        options = RunOptions.resolve({"max_node_visits": payload.max_node_visits, "timeout_ms": payload.timeout_ms})
    except pydantic.ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))
    result = await graph.run(payload.input, options)
    return result.model_dump(mode="json")


@app.post("/example/run-code-review")
async def example_run_code_review(payload: Optional[CodeReviewInput] = None):
    review = payload or CodeReviewInput(code=SAMPLE_CODE, threshold=85)
    result = await get_graph("code_review").run(review.model_dump())
    return result.model_dump(mode="json")


if __name__ == "__main__":
    uvicorn.run("nodeflow.main:app", host="0.0.0.0", port=8000, reload=True)
