"""Deterministic quality scoring: weighted content signals against a tier threshold."""

from __future__ import annotations

from skill_registry.config.settings import Settings
from skill_registry.models.domain import QualityDecision, QualityResult, QualitySignals, TrustTier
from skill_registry.quality.reason_codes import ReasonCode
from skill_registry.quality.signals import effective_word_count


class QualityEvaluator:
    def __init__(self, settings: Settings) -> None:
        self._s = settings

    def score(self, signals: QualitySignals) -> float:
        s = self._s
        words = effective_word_count(signals)
        volume = min(words / s.quality_target_words, 1.0) * s.quality_w_volume
        diversity = signals.unique_word_ratio * s.quality_w_diversity * min(signals.word_count / 50, 1.0)
        headings = min(signals.heading_count, 4) / 4 * s.quality_w_headings
        bullets = min(signals.bullet_count, 6) / 6 * s.quality_w_bullets
        penalty = min(
            signals.template_marker_hits * s.quality_template_penalty,
            s.quality_template_penalty_cap,
        )
        if signals.generic_summary_flag:
            penalty += s.quality_generic_summary_penalty
        raw = volume + diversity + headings + bullets - penalty
        return round(max(0.0, min(100.0, raw)), 2)

    def threshold(self, trust_tier: TrustTier, similar_recent_count: int) -> float:
        s = self._s
        base = {
            TrustTier.LOW: s.quality_threshold_low,
            TrustTier.MEDIUM: s.quality_threshold_medium,
            TrustTier.TRUSTED: s.quality_threshold_trusted,
        }[trust_tier]
        steps = min(max(similar_recent_count, 0), s.quality_similar_max_steps)
        return base + steps * s.quality_similar_step

    def evaluate(
        self,
        signals: QualitySignals,
        trust_tier: TrustTier,
        similar_recent_count: int = 0,
    ) -> QualityResult:
        score = self.score(signals)
        threshold = self.threshold(trust_tier, similar_recent_count)

        def reject(code: ReasonCode) -> QualityResult:
            return QualityResult(
                decision=QualityDecision.REJECT, score=score, reason=code.value, threshold=threshold
            )

        if signals.body_length == 0:
            return reject(ReasonCode.EMPTY_DOCUMENT)
        if trust_tier is TrustTier.LOW and effective_word_count(signals) < self._s.quality_min_words_low:
            return reject(ReasonCode.TOO_FEW_WORDS)
        if score < threshold:
            if signals.template_marker_hits >= 2:
                return reject(ReasonCode.TEMPLATED)
            if similar_recent_count > 0 and score >= self.threshold(trust_tier, 0):
                return reject(ReasonCode.NEAR_DUPLICATE)
            return reject(ReasonCode.LOW_SCORE)
        return QualityResult(
            decision=QualityDecision.ACCEPT,
            score=score,
            reason=ReasonCode.ACCEPTED.value,
            threshold=threshold,
        )
