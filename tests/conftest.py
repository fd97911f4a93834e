import json
from pathlib import Path
from typing import Any, Dict

import pytest
import structlog

from runattest.objects import PipelineRun, TaskRun

TESTDATA = Path(__file__).parent / "testdata"

APP_DIGEST = "c6cad725fced12b1e7594736b205ac4ca71d0f3a665e2e471f6e23b9f1debc86"
OTHER_DIGEST = "f41408bf6c34db52ab1cbcc6c22f7b1eaae411f854541400fb0aa6833d20507e"
BUILDER_DIGEST = "c0b105b44c3093af6c665113002b278d0a2b0435835ca46e9e3376728ebab4fc"
PROXY_DIGEST = "efbefd0798d535d3bec8c2a14b2e5c60c95a2b7793e455d4e4dbd85d438de115"
CLI_DIGEST = "9fe3853e4a88c8b7eaa2f4b9793dbc2da1dfa41b8517ab620417288775950e59"
SOURCE_DIGEST = "6eec170afa4f9e6f8b1a4c28dbd5ed4f13ac8808c985f26a6e3119bb56a27b43"
REPORT_DIGEST = "845e91831319e89c4d656bdb80c278ac09a7230d61e5dfd2e1b1fbb436ac8917"
TESTER_DIGEST = "c5ac0a8da1c9c0ae4d9e3d672738acdf7335212cfaf9aa45a90b29f2915f9b63"
CLEANER_DIGEST = "f51b94bbc1bff48bc8f55bfc69f57d70dab5048dfc8c6295972f66d83dac00d8"
CATALOG_COMMIT = "c29c30c443c7a2e3c2171a8a302cac769c5fef6c"
TASK_COMMIT = "ec0b4f0b5c90ed0fa911a2972ccc452641b31563"
PIPELINE_COMMIT = "54563f95fefa691baa82a522156322c21f7d6df3"

CHILD_FIXTURES = ("taskrun-build.json", "taskrun-test.json", "taskrun-cleanup.json")


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()


def load_fixture(name: str) -> Dict[str, Any]:
    return json.loads((TESTDATA / name).read_text(encoding="utf-8"))


@pytest.fixture
def task_run() -> TaskRun:
    return TaskRun.model_validate(load_fixture("taskrun.json"))


@pytest.fixture
def pipeline_run() -> PipelineRun:
    run = PipelineRun.model_validate(load_fixture("pipelinerun.json"))
    for name in CHILD_FIXTURES:
        run.append_task_run(TaskRun.model_validate(load_fixture(name)))
    return run
