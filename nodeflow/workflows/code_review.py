# nodeflow/workflows/code_review.py
import asyncio
from typing import Any, Dict, List

from pydantic import BaseModel

from ..graph import Graph
from ..library import register_graph
from ..models import Forward
from ..registry import GraphRegistry

# Example graph for the code-review mini-agent:
#
#   extract -> [check_complexity, detect_issues] -> suggest -> check_done
#
# Each analysis adds its own key to the state it received; suggest folds
# both states together. check_done ends the run once the quality score
# meets the threshold, or sends the code back to extract with a lower one.

THRESHOLD_STEP = 10


class CodeReviewInput(BaseModel):
    code: str
    threshold: int = 80


def detect_smells(code: str) -> int:
    # trivial heuristic
    issues = 0
    if "TODO" in code:
        issues += 1
    if "print(" in code:
        issues += 1
    if len(code.splitlines()) > 200:
        issues += 2
    return issues


def compute_complexity(func_code: str) -> int:
    # naive function complexity: count branches keywords
    score = 1
    for kw in ("if ", "for ", "while ", "try:", "except"):
        score += func_code.count(kw)
    return score


def split_functions(code: str) -> List[Dict[str, str]]:
    """Very naive split on 'def ' occurrences."""
    funcs = []
    parts = code.split("\ndef ")
    for i, p in enumerate(parts):
        if i == 0 and not p.strip().startswith("def "):
            # skip leading non-def part
            continue
        text = (("def " + p) if not p.startswith("def ") else p).strip()
        name = text.splitlines()[0].split("(")[0].replace("def ", "").strip()
        funcs.append({"name": name, "code": text})
    return funcs


async def extract_functions(review: CodeReviewInput) -> Dict[str, Any]:
    """Produces state['functions'] = list of {'name':..., 'code':...}"""
    funcs = split_functions(review.code)
    await asyncio.sleep(0.01)
    return {"code": review.code, "threshold": review.threshold, "functions": funcs}


async def check_complexity(state: Dict[str, Any]) -> Dict[str, Any]:
    results = [{"name": f["name"], "complexity": compute_complexity(f["code"])} for f in state["functions"]]
    await asyncio.sleep(0.01)
    return {**state, "complexity_report": results}


async def detect_basic_issues(state: Dict[str, Any]) -> Dict[str, Any]:
    detail = [{"name": f["name"], "issues": detect_smells(f["code"])} for f in state["functions"]]
    await asyncio.sleep(0.01)
    return {**state, "issues": {"total": sum(d["issues"] for d in detail), "detail": detail}}


def suggest_improvements(inputs: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    state = {**inputs["check_complexity"], **inputs["detect_issues"]}
    # quality_score = 100 - complexity*5 - issues*10 (clamped)
    total_complexity = sum(item["complexity"] for item in state["complexity_report"])
    issues = state["issues"]["total"]
    quality_score = max(0, 100 - total_complexity * 5 - issues * 10)
    suggestions = []
    if issues > 0:
        suggestions.append("Fix TODOs and prints")
    if total_complexity > 10:
        suggestions.append("Refactor complex functions into smaller pieces")
    return {**state, "quality_score": quality_score, "suggestions": suggestions}


def check_done(state: Dict[str, Any]):
    if state["quality_score"] >= state["threshold"]:
        return None
    # lower the threshold each round so the loop always ends
    relaxed = max(0, state["threshold"] - THRESHOLD_STEP)
    return Forward(name="extract", input={"code": state["code"], "threshold": relaxed})


@register_graph("code_review")
def build_code_review() -> Graph:
    return (
        GraphRegistry()
        .add_node("extract", extract_functions, input_schema=CodeReviewInput)
        .add_node("check_complexity", check_complexity)
        .add_node("detect_issues", detect_basic_issues)
        .add_merge_node("suggest", ["check_complexity", "detect_issues"], suggest_improvements)
        .add_router_node("check_done", check_done)
        .edge("extract", ["check_complexity", "detect_issues"])
        .edge("suggest", "check_done")
        .compile("extract")
    )
