"""
Deterministic health score analysis.

This is the generic feedback view offered whenever no proactive suggestion
was sent for a submission. No model is involved: the same scores always
produce the same markdown.
"""

from habit_feedback.domain.models import ScoreCategory

CATEGORY_LABELS: dict[ScoreCategory, str] = {
    ScoreCategory.DIET: "Healthy Meal Plan",
    ScoreCategory.EXERCISE: "Exercise and Wellness",
    ScoreCategory.MEDICATION: "Prescription Medication",
}

# (low: score <= 3, high: score >= 8, otherwise moderate)
_COMMENTARY: dict[ScoreCategory, tuple[str, str, str]] = {
    ScoreCategory.DIET: (
        "Your healthy meal plan score of {score}/10 indicates you may be facing some "
        "challenges with your nutrition goals.",
        "An excellent diet score of {score}/10 shows fantastic commitment to your nutrition "
        "goals!",
        "Your healthy meal plan score of {score}/10 shows moderate success.",
    ),
    ScoreCategory.EXERCISE: (
        "Your exercise and wellness score of {score}/10 suggests there's room for improvement "
        "in your physical activity routine.",
        "Outstanding exercise score of {score}/10 demonstrates excellent dedication to staying "
        "active!",
        "Your exercise and wellness score of {score}/10 indicates you're making steady progress "
        "with your fitness routine.",
    ),
    ScoreCategory.MEDICATION: (
        "Your prescription medication score of {score}/10 shows significant challenges with "
        "following your prescribed treatment plan.",
        "Excellent medication adherence score of {score}/10 shows you're consistently following "
        "your treatment plan!",
        "Your prescription medication score of {score}/10 indicates generally good compliance "
        "with some room for improvement.",
    ),
}

RECOMMENDATIONS: dict[ScoreCategory, str] = {
    ScoreCategory.DIET: (
        "**To help with your diet, you could try these features:**\n"
        "- Use the 'Food Database' to check nutritional info.\n"
        "- Visit 'Inspiration Machine D' for meal ideas that match your doctor's plan."
    ),
    ScoreCategory.EXERCISE: (
        "**To support your exercise routine, you could explore:**\n"
        "- 'Inspiration Machine E&W' for new workout videos.\n"
        "- Use 'E&W Support' to find local gyms or trainers near you."
    ),
    ScoreCategory.MEDICATION: (
        "**For medication adherence, these tools can help:**\n"
        "- Use your 'Journaling' feature to track how you feel after taking your medication.\n"
        "- Review your consistency in 'Health Snapshots'."
    ),
}


def lowest_scoring_area(scores: dict[ScoreCategory, int]) -> ScoreCategory:
    """Lowest category; ties go to the earlier of diet, exercise, medication."""
    return min(ScoreCategory, key=lambda category: scores[category])


def category_commentary(category: ScoreCategory, score: int) -> str:
    low, high, moderate = _COMMENTARY[category]
    if score <= 3:
        template = low
    elif score >= 8:
        template = high
    else:
        template = moderate
    return template.format(score=score)


def generate_health_score_analysis(diet: int, exercise: int, medication: int) -> str:
    """Markdown analysis of one day's scores with recommendations for the weakest area."""
    scores = {
        ScoreCategory.DIET: diet,
        ScoreCategory.EXERCISE: exercise,
        ScoreCategory.MEDICATION: medication,
    }
    summary = "\n".join(
        f"- **{CATEGORY_LABELS[category]}:** {score}/10" for category, score in scores.items()
    )
    detail = " ".join(category_commentary(category, score) for category, score in scores.items())

    return f"""# Health Score Analysis

## Score Summary
{summary}

## Detailed Analysis
{detail}

## Recommendations
{RECOMMENDATIONS[lowest_scoring_area(scores)]}

## Next Steps
Continue tracking your daily scores to establish consistent patterns for your next progress report.
"""
