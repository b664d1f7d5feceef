"""
Insight analyzers.

An analyzer turns check-in data into natural-language observations. The
statistical analyzer is the default; a generative model can replace it as
long as it returns plain strings, which the generator then filters.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any


class InsightAnalyzer(ABC):
    """
    Abstract insight analyzer.
    """

    @abstractmethod
    async def analyze(self, checkins: List[Dict[str, Any]], insight_type: str) -> List[str]:
        """
        Produce observations for a set of check-ins.

        Args:
            checkins: Check-in records in the requested range
            insight_type: Kind of insight requested (e.g. "team_wellbeing")

        Returns:
            Observation strings
        """
        pass


class StatisticalAnalyzer(InsightAnalyzer):
    """
    Deterministic summary over mean mood and mean workload.
    """

    LOW_MOOD_MEAN = 5.0
    HIGH_WORKLOAD_MEAN = 7.0

    INSUFFICIENT_DATA = "Insufficient data for meaningful insights in this time period."

    async def analyze(self, checkins: List[Dict[str, Any]], insight_type: str) -> List[str]:
        if not checkins:
            return [self.INSUFFICIENT_DATA]

        avg_mood = sum(c["moodScore"] for c in checkins) / len(checkins)
        avg_workload = sum(c["workloadLevel"] for c in checkins) / len(checkins)

        insights = []

        if avg_mood < self.LOW_MOOD_MEAN:
            insights.append(
                f"Team mood scores are below average ({avg_mood:.1f}/10). "
                f"Consider checking in with individual team members to understand concerns."
            )

        if avg_workload > self.HIGH_WORKLOAD_MEAN:
            insights.append(
                f"Team reporting high workload levels ({avg_workload:.1f}/10). "
                f"Review capacity and consider workload distribution adjustments."
            )

        if not insights:
            insights.append(
                f"Team wellbeing metrics are within normal range. "
                f"Mood: {avg_mood:.1f}/10, Workload: {avg_workload:.1f}/10."
            )

        return insights
