from __future__ import annotations
import logging
from typing import Iterable, Mapping, Optional

from . import aggregates, external, formatter, thresholds, uniformity
from .interfaces import ReadingStore
from .models import Computation, ErrorKind, FunctionError, FunctionResult, ResolvedWindow
from .normalize import index_tags
from .registry import (
    AvgDeviationCall,
    Call,
    CenterPointCall,
    Family,
    PowerCall,
    Registry,
    TimePointCall,
    WindowCall,
)
from .tags import FunctionConfig, Tag
from .window import resolve_window

logger = logging.getLogger(__name__)


class Evaluator:
    """Pure evaluation: config + task + roster + readings -> FunctionResult.

    Never raises; every failure comes back as an error result.
    """

    def __init__(self, store: ReadingStore, registry: Optional[Registry] = None) -> None:
        self._store = store
        self.registry = registry or Registry()

    def evaluate(self, config: FunctionConfig, task_id: Optional[str], tags: Iterable[Tag]) -> FunctionResult:
        roster = index_tags(tags)
        try:
            call = self.registry.bind(config, task_id)
            result = self._dispatch(call, task_id, roster)
        except FunctionError as e:
            logger.warning("%s failed [%s]: %s", config.function_type, e.kind.value, e.message)
            return formatter.failure(e)
        except Exception as e:
            logger.exception("%s raised unexpectedly", config.function_type)
            return formatter.failure(FunctionError(ErrorKind.INTERNAL, f"计算失败: {e}", type(e).__name__))

        logger.info("%s -> %s", config.function_type, formatter.render(result.value))
        return result

    def _dispatch(self, call: Call, task_id: Optional[str], tags: Mapping[str, Tag]) -> FunctionResult:
        spec = call.spec
        # Kinds that do not share the generic window query
        if isinstance(call, PowerCall):
            return formatter.success(spec, external.power(call, tags))
        if isinstance(call, TimePointCall):
            return formatter.success(spec, external.device_time_point(call, self._store, task_id, tags))

        window = resolve_window(self._store, task_id, call, tags)
        return formatter.success(spec, self._run_family(call, window, tags), window.query_info)

    def _run_family(self, call: WindowCall, window: ResolvedWindow, tags: Mapping[str, Tag]) -> Computation:
        family = call.spec.family
        if family is Family.SCALAR:
            return aggregates.run(call, window)
        if family is Family.THRESHOLD:
            return thresholds.run(call, window)
        if family in (Family.UNIFORMITY, Family.SAME_TIME):
            return uniformity.run(call, window, self.registry.defaults.preview_lines)
        if isinstance(call, CenterPointCall):
            return external.center_point_deviation(call, window, tags)
        if isinstance(call, AvgDeviationCall):
            return external.avg_deviation(call, window, tags)
        return external.cooling_rate(call, window)
