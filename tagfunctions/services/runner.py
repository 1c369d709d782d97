from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..core.timeutil import now_utc
from ..domain.evaluator import Evaluator
from ..domain.models import ErrorKind, FunctionResult, ResultValue, RunStatus
from ..domain.normalize import to_location_set
from ..domain.tags import FunctionConfig, Tag, TagType

logger = logging.getLogger(__name__)

ApplyCallback = Callable[[str, dict[str, Any]], None]

NOT_CONFIGURED = "请先配置函数方法"


@dataclass
class RunnerState:
    status: RunStatus = RunStatus.IDLE
    message: str = ""
    last_result: Optional[FunctionResult] = None


def coerce_value(tag_type: TagType, value: Optional[ResultValue]) -> Any:
    """Shape a successful result for the tag it is written to."""
    if tag_type is TagType.LOCATION:
        return to_location_set(value)
    return value if value is not None else ""


class TagFunctionRunner:
    """Evaluation session for one tag.

    `evaluate` is the pure variant. `execute` runs it and writes the
    outcome back: the value only on success, the run snapshot always.
    """

    def __init__(
        self,
        tag: Tag,
        all_tags: Sequence[Tag],
        task_id: Optional[str],
        evaluator: Evaluator,
        on_apply: Optional[ApplyCallback] = None,
    ) -> None:
        self.tag = tag
        self._all_tags = all_tags
        self._task_id = task_id
        self._evaluator = evaluator
        self._on_apply = on_apply
        self.state = RunnerState()

    @property
    def function_config(self) -> Optional[FunctionConfig]:
        return self.tag.function_config

    def evaluate(self, config: Optional[FunctionConfig] = None) -> FunctionResult:
        config = config or self.function_config
        if config is None:
            return FunctionResult(status=RunStatus.ERROR, message=NOT_CONFIGURED, error=ErrorKind.MISSING_INPUT)
        # The caller may keep editing its roster; work on a private copy
        snapshot = [t.model_copy(deep=True) for t in self._all_tags]
        return self._evaluator.evaluate(config, self._task_id, snapshot)

    def execute(self, config: Optional[FunctionConfig] = None) -> None:
        config = config or self.function_config
        if config is None:
            self.state.status = RunStatus.ERROR
            self.state.message = NOT_CONFIGURED
            return

        self.state.status = RunStatus.RUNNING
        self.state.message = "计算中..."

        result = self.evaluate(config)
        self.state.status = result.status
        self.state.message = result.message
        self.state.last_result = result

        updated = config.with_run(result, now_utc().isoformat())
        payload: dict[str, Any] = {
            "functionConfig": updated.model_dump(by_alias=True, exclude_unset=True, mode="json")
        }
        self.tag.function_config = updated
        if result.ok:
            self.tag.value = coerce_value(self.tag.type, result.value)
            payload["value"] = self.tag.value

        logger.info(
            "Tag %s (%s) %s: %s", self.tag.id, config.function_type, result.status.value, result.message
        )
        if self._on_apply is not None and self.tag.id:
            self._on_apply(self.tag.id, payload)
