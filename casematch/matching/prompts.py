"""Prompts sent to the scoring model."""

from typing import Optional

TEXT_COMPARISON_PROMPT = """Compare these two case reports and determine if they likely refer to the same child. Consider names, physical descriptions, distinctive features, locations and circumstances mentioned.

Case 1:
Name: {name_1}
Description: {description_1}

Case 2:
Name: {name_2}
Description: {description_2}

Provide a similarity score between 0 and 1, where:
0 = Completely different cases
1 = Almost certainly the same case

Respond with JSON only, in this format:
{{
  "similarityScore": number,
  "reasoning": string,
  "matchedAspects": {{
    "name": number,
    "physicalDescription": number,
    "distinctiveFeatures": number,
    "location": number,
    "circumstances": number
  }}
}}"""

IMAGE_COMPARISON_PROMPT = (
    "Compare these two images and determine if they show the same person. "
    "Focus on facial features, distinctive marks, and overall appearance. "
    "Provide a similarity score between 0 and 1, where 1 means definitely the same person. "
    "Respond with JSON only, in this format: "
    '{"similarityScore": number, "reasoning": string, '
    '"matchedFeatures": {"facialFeatures": number, "distinctiveMarks": number, "overallAppearance": number}}'
)

IMAGE_TRAITS_PROMPT = (
    "Describe the child in this photo for identification purposes. "
    "Focus on clear, objective, identifying details. "
    "Respond with JSON only, in this format: "
    '{"description": string, "characteristics": {"age": number, "gender": string, '
    '"hairColor": string, "eyeColor": string, "height": string, "buildType": string, '
    '"complexion": string, "distinguishingFeatures": [string], "scars": [string], '
    '"clothing": [string], "accessories": [string]}}'
)


def _field(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or "Not provided"


def build_text_prompt(
    name_1: Optional[str],
    description_1: Optional[str],
    name_2: Optional[str],
    description_2: Optional[str],
) -> str:
    return TEXT_COMPARISON_PROMPT.format(
        name_1=_field(name_1),
        description_1=_field(description_1),
        name_2=_field(name_2),
        description_2=_field(description_2),
    )
