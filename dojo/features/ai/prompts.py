"""Prompt templates for challenge generation, feedback and thread writing.

Builders are pure and never fail; empty inputs are embedded as-is.
"""

from dojo.features.schedule.service import category_angles
from dojo.models.challenge import Challenge, DayAssignment, Difficulty

THREAD_DELIMITER = "---TWEET---"
THREAD_SEGMENT_LIMIT = 270
THREAD_SEGMENT_COUNT = 5
FEEDBACK_WORD_LIMIT = 220

CREDENTIAL_PROBE_PROMPT = "Reply with only the word: OK"

DIFFICULTY_GUIDANCE = {
    Difficulty.BEGINNER: "basic onchain signals, simple concepts",
    Difficulty.INTERMEDIATE: "connect 2-3 concepts together",
    Difficulty.ADVANCED: "deep protocol knowledge, multi-step reasoning",
}

CHALLENGE_SHAPE = """{
  "title": "4-7 word punchy title",
  "problem": "3-5 sentence detailed scenario with specific numbers, percentages, and dollar amounts. Make it feel real and current. End with 1-2 clear questions.",
  "hints": ["hint 1", "hint 2", "hint 3"],
  "keyMetrics": ["Metric 1", "Metric 2", "Metric 3", "Metric 4"],
  "tools": ["Tool 1", "Tool 2", "Tool 3"],
  "teachingPoint": "One sentence explaining the core concept"
}"""


def build_challenge_prompt(assignment: DayAssignment, today: str) -> str:
    category = assignment.category
    difficulty = assignment.difficulty.value
    return f"""Create a daily onchain analysis challenge for Day {assignment.day_index}.

Category: {category.label}
Difficulty: {difficulty}
Date context: {today}

Generate a challenge with this JSON structure:
{CHALLENGE_SHAPE}

Requirements:
- Use realistic, specific numbers (e.g., "14 wallets" not "some wallets")
- Make the scenario feel current and real
- Difficulty {difficulty}: {DIFFICULTY_GUIDANCE[assignment.difficulty]}
- Category focus ({category.label}): {category_angles(category.id)}"""


def build_feedback_prompt(challenge: Challenge, analysis: str, conclusion: str) -> str:
    return f"""Challenge: "{challenge.title}"
Problem: {challenge.problem}
Teaching point: {challenge.teaching_point}

Student's analysis: {analysis}
Student's conclusion: {conclusion}

Evaluate this onchain analysis. Be direct and specific. Format your response in exactly 3 sections using these headers:

✅ WHAT YOU NAILED
(2-3 specific things they got right, reference exact points from their analysis)

🔧 SHARPEN THIS
(1-2 specific gaps, missed metrics, or wrong assumptions. Be rigorous)

💡 CORE TAKEAWAY
(One memorable sentence they should never forget about this type of onchain signal)

Keep total response under {FEEDBACK_WORD_LIMIT} words. Use onchain analyst language. Don't be generic."""


def build_thread_prompt(challenge: Challenge, analysis: str, conclusion: str, day_index: int) -> str:
    return f"""You're writing a viral crypto Twitter thread for Day {day_index} of someone's daily onchain analysis practice.

Challenge: "{challenge.title}" ({challenge.category} · {challenge.difficulty.value})
Problem studied: {challenge.problem}
Their analysis: {analysis}
Their conclusion: {conclusion}

Write a {THREAD_SEGMENT_COUNT}-tweet thread that:
Tweet 1: Hook. The puzzle with the most shocking/interesting number. Start with "🔍 Day {day_index} | Onchain puzzle:"
Tweet 2: The data. Bullet points with the key onchain metrics from the problem
Tweet 3: The analysis. What the data actually means (use their analysis, make it crisp)
Tweet 4: The conclusion + actionable insight
Tweet 5: End with a thought-provoking question for followers + 3-4 relevant hashtags (always include #OnchainAnalysis)

Rules:
- Each tweet MUST be under {THREAD_SEGMENT_LIMIT} characters (strict limit)
- Use their actual analysis and numbers. This should feel authentic, not templated
- No hype language, pure data-driven insight
- Make it educational AND engaging, imagine 10k followers reading this

Separate each tweet with exactly: {THREAD_DELIMITER}
Return ONLY the tweets, nothing else."""
