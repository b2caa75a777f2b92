"""
Statistical Engine for A/B Testing - confidence, significance and winner policy.

Per-variant ``confidence`` is a simple normal-approximation proxy:

    margin = z * sqrt(p * (1 - p) / visitors)
    confidence = clamp(0, 99, (1 - margin) * 100)

with ``confidence = 0`` below a minimum sample. It is an order-of-magnitude
indicator, not a hypothesis test. A proper two-proportion z-test is reported
separately as ``p_value`` and does not take part in winner selection.

Winner policy, applied to a complete result set:
    1. at least two variants
    2. every variant has the minimum number of visitors
    3. best and runner-up by conversion rate (stable sort, declared order wins ties)
    4. runner-up rate of zero means no winner
    5. relative improvement and best confidence must both clear their thresholds
"""

import math
from dataclasses import dataclass, field
from statistics import NormalDist
from typing import Any, Dict, List, Optional, Sequence

from variantlab.ab_testing.models import VariantResult
from variantlab.config import settings
from variantlab.utils.logging import get_logger

MAX_CONFIDENCE = 99.0


@dataclass
class StatisticalResult:
    """Result of a two-proportion z-test."""

    p_value: float
    z_statistic: float
    confidence_level: float
    is_significant: bool
    effect_size: float
    power: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class StatisticalEngine:
    """Statistical analysis engine for A/B tests."""

    def __init__(
        self,
        min_sample_for_confidence: Optional[int] = None,
        min_visitors_per_variant: Optional[int] = None,
        min_improvement: Optional[float] = None,
        min_confidence: Optional[float] = None,
        z_score: Optional[float] = None,
    ):
        """Initialize statistical engine.

        Args:
            min_sample_for_confidence: Visitors below which confidence is 0
            min_visitors_per_variant: Visitors every variant needs before a winner
            min_improvement: Minimum relative lift of best over runner-up
            min_confidence: Minimum confidence of the best variant
            z_score: Z-score used in the confidence margin
        """
        self.min_sample_for_confidence = (
            min_sample_for_confidence
            if min_sample_for_confidence is not None
            else settings.AB_MIN_SAMPLE_FOR_CONFIDENCE
        )
        self.min_visitors_per_variant = (
            min_visitors_per_variant
            if min_visitors_per_variant is not None
            else settings.AB_MIN_VISITORS_PER_VARIANT
        )
        self.min_improvement = (
            min_improvement if min_improvement is not None else settings.AB_MIN_IMPROVEMENT
        )
        self.min_confidence = (
            min_confidence if min_confidence is not None else settings.AB_MIN_CONFIDENCE
        )
        self.z_score = z_score if z_score is not None else settings.AB_Z_SCORE
        self.logger = get_logger(f"{__name__}.StatisticalEngine")

    def calculate_confidence(self, conversions: int, visitors: int) -> float:
        """Confidence proxy for one variant, in [0, 99]."""
        if visitors < self.min_sample_for_confidence:
            return 0.0

        p = conversions / visitors
        margin = self.z_score * math.sqrt(p * (1 - p) / visitors)
        return min(MAX_CONFIDENCE, max(0.0, (1 - margin) * 100))

    def two_proportion_z_test(
        self,
        control: Dict[str, int],
        treatment: Dict[str, int],
        alpha: float = 0.05,
    ) -> Optional[StatisticalResult]:
        """Two-tailed two-proportion z-test of treatment against control.

        Args:
            control: Dict with 'conversions' and 'samples'
            treatment: Dict with 'conversions' and 'samples'
            alpha: Significance level

        Returns:
            Test result, or None when either arm has no samples
        """
        x1, n1 = control["conversions"], control["samples"]
        x2, n2 = treatment["conversions"], treatment["samples"]

        if n1 == 0 or n2 == 0:
            return None

        p1 = x1 / n1
        p2 = x2 / n2
        p_pooled = (x1 + x2) / (n1 + n2)

        se = math.sqrt(p_pooled * (1 - p_pooled) * (1 / n1 + 1 / n2))
        z = (p2 - p1) / se if se > 0 else 0.0

        p_value = 2 * (1 - self._standard_normal_cdf(abs(z)))
        p_value = min(1.0, max(0.0, p_value))

        effect_size = (p2 - p1) / p1 if p1 > 0 else 0.0

        return StatisticalResult(
            p_value=p_value,
            z_statistic=z,
            confidence_level=1 - alpha,
            is_significant=p_value < alpha,
            effect_size=effect_size,
            power=self._calculate_power(n1, n2, p1, p2, alpha),
            metadata={
                "p1": p1,
                "p2": p2,
                "n1": n1,
                "n2": n2,
                "pooled_proportion": p_pooled,
                "standard_error": se,
            },
        )

    def build_results(
        self, variant_ids: Sequence[str], counts: Dict[str, Dict[str, int]]
    ) -> List[VariantResult]:
        """Compute per-variant results in declared order and mark the winner.

        Args:
            variant_ids: Variant ids in declared order
            counts: Mapping of variant id to {'visitors': int, 'conversions': int}

        Returns:
            One VariantResult per declared variant
        """
        results = []
        for variant_id in variant_ids:
            variant_counts = counts.get(variant_id, {})
            visitors = variant_counts.get("visitors", 0)
            conversions = variant_counts.get("conversions", 0)
            results.append(
                VariantResult(
                    variant_id=variant_id,
                    visitors=visitors,
                    conversions=conversions,
                    conversion_rate=conversions / visitors if visitors > 0 else 0.0,
                    confidence=self.calculate_confidence(conversions, visitors),
                )
            )

        if results:
            control = results[0]
            for result in results[1:]:
                z_test = self.two_proportion_z_test(
                    {"conversions": control.conversions, "samples": control.visitors},
                    {"conversions": result.conversions, "samples": result.visitors},
                )
                result.p_value = z_test.p_value if z_test else None

        winner = self.determine_winner(results)
        if winner is not None:
            winner.is_winner = True

        return results

    def determine_winner(
        self, results: Sequence[VariantResult]
    ) -> Optional[VariantResult]:
        """Apply the winner policy. Pure function of the result set."""
        if len(results) < 2:
            return None

        if not all(r.visitors >= self.min_visitors_per_variant for r in results):
            return None

        # sorted() is stable with reverse=True, earlier variants win ties
        ranked = sorted(results, key=lambda r: r.conversion_rate, reverse=True)
        best, second = ranked[0], ranked[1]

        if second.conversion_rate == 0:
            return None

        improvement = (
            best.conversion_rate - second.conversion_rate
        ) / second.conversion_rate

        if improvement >= self.min_improvement and best.confidence >= self.min_confidence:
            self.logger.info(
                f"Winner determined: {best.variant_id} "
                f"(improvement={improvement:.4f}, confidence={best.confidence:.2f})"
            )
            return best

        return None

    def calculate_sample_size(
        self,
        baseline_rate: float,
        minimum_detectable_effect: float,
        alpha: float = 0.05,
        power: float = 0.8,
        two_tailed: bool = True,
    ) -> int:
        """Calculate required sample size per variant for detecting an effect.

        Args:
            baseline_rate: Expected baseline conversion rate
            minimum_detectable_effect: Relative lift to detect (0.1 = +10%)
            alpha: Type I error rate (significance level)
            power: Statistical power (1 - Type II error rate)
            two_tailed: Whether to use two-tailed test

        Returns:
            Required sample size per variant
        """
        if not 0 < baseline_rate < 1:
            raise ValueError("Baseline rate must be between 0 and 1")
        if minimum_detectable_effect <= 0:
            raise ValueError("Minimum detectable effect must be positive")

        normal = NormalDist()
        z_alpha = normal.inv_cdf(1 - alpha / (2 if two_tailed else 1))
        z_beta = normal.inv_cdf(power)

        p1 = baseline_rate
        p2 = min(baseline_rate * (1 + minimum_detectable_effect), 0.9999)

        p_pooled = (p1 + p2) / 2
        variance_pooled = p_pooled * (1 - p_pooled)

        variance1 = p1 * (1 - p1)
        variance2 = p2 * (1 - p2)

        numerator = (
            z_alpha * math.sqrt(2 * variance_pooled)
            + z_beta * math.sqrt(variance1 + variance2)
        ) ** 2
        denominator = (p2 - p1) ** 2

        sample_size = math.ceil(numerator / denominator)

        self.logger.info(f"Calculated sample size: {sample_size} per variant")
        return sample_size

    def _standard_normal_cdf(self, x: float) -> float:
        return 0.5 * (1 + math.erf(x / math.sqrt(2)))

    def _calculate_power(
        self, n1: int, n2: int, p1: float, p2: float, alpha: float
    ) -> float:
        """Calculate statistical power for two-proportion test."""
        if p1 == p2 or n1 == 0 or n2 == 0:
            return 0.0

        z_alpha = NormalDist().inv_cdf(1 - alpha / 2)

        se_null = math.sqrt(((p1 + p2) / 2) * (1 - (p1 + p2) / 2) * (1 / n1 + 1 / n2))
        se_alt = math.sqrt(p1 * (1 - p1) / n1 + p2 * (1 - p2) / n2)

        if se_null == 0 or se_alt == 0:
            return 0.0

        z_beta = (abs(p2 - p1) - z_alpha * se_null) / se_alt
        power = self._standard_normal_cdf(z_beta)

        return max(0.0, min(1.0, power))
