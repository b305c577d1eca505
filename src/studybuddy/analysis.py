import logging
from typing import Iterable, List, Optional

from .models import UNDERSTANDING_LEVELS, AnalysisReport, SessionAnalysis

logger = logging.getLogger(__name__)


def _union(existing: List[str], incoming: Iterable[str]) -> List[str]:
    merged = list(existing)
    seen = set(existing)
    for item in incoming:
        if item and item not in seen:
            seen.add(item)
            merged.append(item)
    return merged


def merge_analysis(
    current: SessionAnalysis, report: Optional[AnalysisReport]
) -> SessionAnalysis:
    """Folds one assistant turn's report into the running analysis.

    Areas and topics only ever grow. The understanding level is replaced by
    the reported one when it is a known level, otherwise the prior value stays.
    """
    if report is None:
        return current

    understanding = current.current_understanding
    if report.understanding:
        if report.understanding in UNDERSTANDING_LEVELS:
            understanding = report.understanding
        else:
            logger.warning(f"Ignoring unknown understanding level: {report.understanding!r}")

    return SessionAnalysis(
        weak_areas=_union(current.weak_areas, report.weak_areas),
        strong_areas=_union(current.strong_areas, report.strong_areas),
        topics_covered=_union(current.topics_covered, report.topics),
        current_understanding=understanding,
    )
