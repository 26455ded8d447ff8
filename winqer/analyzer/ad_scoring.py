"""WINQER — Ad Performance Scorer.

Fixed-point checklist over an ad's 90-day insights for a store-visit
funnel. Scores add up per check; 60 points or more marks a winner.
"""

from winqer.models.metrics_models import Ad, AdAnalysis, AdInsights

WINNER_THRESHOLD = 60

# CTR (%)
HIGH_CTR = 2.0
GOOD_CTR = 1.0
# Yen
EFFICIENT_LP_VIEW_COST = 200
LOW_CPC = 100


def score_insights(insights: AdInsights) -> AdAnalysis:
    reasons: list[str] = []
    score = 0

    if insights.ctr >= HIGH_CTR:
        score += 40
        reasons.append("High CTR (> 2.0%) indicates strong visual/hook.")
    elif insights.ctr >= GOOD_CTR:
        score += 20
        reasons.append("Good CTR (> 1.0%).")

    if insights.lp_views > 0:
        score += 20
        lp_views = insights.lp_views
        shown = int(lp_views) if float(lp_views).is_integer() else lp_views
        reasons.append(f"Generated {shown} LP Views.")

        if insights.cost_per_lp_view < EFFICIENT_LP_VIEW_COST:
            score += 10
            reasons.append("Efficient LP View Cost (< ¥200).")

    if 0 < insights.cpc < LOW_CPC:
        score += 20
        reasons.append("Low CPC (< ¥100).")

    return AdAnalysis(is_winner=score >= WINNER_THRESHOLD, score=score, reasons=reasons)


def analyze_ad_performance(ad: Ad) -> AdAnalysis:
    """Score one ad."""
    return score_insights(ad.insights)
