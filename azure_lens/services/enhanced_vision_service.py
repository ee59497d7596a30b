import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional

from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import (
    EnhancedAnalysisError,
    is_content_filter_error,
    is_quota_error,
)

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """
You are an expert image analyst. Please analyze this image in detail and provide:

1. **Main Description**: A rich, engaging description of what you see (2-3 sentences)
2. **Key Objects**: List all important objects, people, animals, or items you can identify
3. **Scene Context**: Describe the setting, environment, or context (indoor/outdoor, time of day, weather, etc.)
4. **Activities**: What activities or actions are happening in the image?
5. **Mood/Atmosphere**: What mood or feeling does the image convey?
6. **Text Content**: Any text, signs, or writing visible in the image
7. **Colors & Composition**: Notable colors, lighting, and visual composition
8. **Interesting Details**: Any unique, unusual, or noteworthy details

Please make your analysis engaging and conversational, as if you're describing the image to a friend. Be thorough but natural in your description.

Format your response as a JSON object with these fields:
- mainDescription: string
- objects: array of strings
- sceneContext: string
- activities: array of strings
- moodAtmosphere: string
- textContent: string
- colorsComposition: string
- interestingDetails: array of strings
- confidence: number (0-1)
"""

SUGGESTION_PROMPT = """
Based on this detailed image analysis, create 4-5 engaging conversation starter questions that would be interesting to ask about this image. Make them specific to what's actually in the image, not generic.

Image Analysis:
- Main Description: {main_description}
- Scene Context: {scene_context}
- Activities: {activities}
- Mood: {mood}
- Objects: {objects}
- Interesting Details: {details}

Create questions that are:
- Specific to this image's content
- Engaging and conversational
- Encourage deeper exploration
- Vary in type (descriptive, analytical, interpretive)

Return as a JSON object with a "suggestions" array of strings.
"""

BASIC_SUGGESTIONS = [
    "What do you see in this image?",
    "Can you describe the main subject?",
    "What's the mood of this image?",
    "Tell me about the colors and composition",
]

EMPTY_ANSWER_SUGGESTIONS = [
    "What story does this image tell?",
    "How does this image make you feel?",
    "What's the most interesting detail you notice?",
    "What might have happened before this moment?",
]

ERROR_SUGGESTIONS = [
    "What's the story behind this image?",
    "What draws your attention most?",
    "How would you describe the atmosphere?",
    "What details stand out to you?",
]

DEFAULT_CONFIDENCE = 0.9
OBJECT_CONFIDENCE = 0.85
ACTIVITY_CONFIDENCE = 0.8


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model answer.

    Tolerates markdown code fences, prose around the object and escaped
    braces. Raises ValueError when no object can be recovered.
    """
    json_str = text.strip()

    # Handle markdown code blocks: ```json\n{...}\n``` or ```\n{...}\n```
    if "```" in json_str:
        code_block_match = re.search(
            r"```(?:json)?\s*\n?(.*?)\n?```", json_str, re.DOTALL
        )
        if code_block_match:
            json_str = code_block_match.group(1).strip()

    if not json_str.startswith("{"):
        start_idx = json_str.find("{")
        if start_idx != -1:
            json_str = json_str[start_idx:]

    if not json_str.endswith("}"):
        end_idx = json_str.rfind("}") + 1
        if end_idx > 0:
            json_str = json_str[:end_idx]

    if "\\{" in json_str or "\\}" in json_str or "\\[" in json_str or "\\]" in json_str:
        json_str = json_str.replace("\\{", "{").replace("\\}", "}")
        json_str = json_str.replace("\\[", "[").replace("\\]", "]")
        json_str = json_str.replace('\\"', '"')

    if not (json_str.startswith("{") and json_str.endswith("}")):
        raise ValueError("Could not find valid JSON in response")

    parsed = json.loads(json_str)
    if not isinstance(parsed, dict):
        raise ValueError("Model answer is not a JSON object")
    return parsed


def usage_to_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    if hasattr(usage, "model_dump"):
        return usage.model_dump()
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None),
        "completion_tokens": getattr(usage, "completion_tokens", None),
        "total_tokens": getattr(usage, "total_tokens", None),
    }


def reshape_enhanced_analysis(
    analysis: Dict[str, Any], model: str, usage: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Map the model's free-form answer onto the shared analysis schema"""
    confidence = analysis.get("confidence") or DEFAULT_CONFIDENCE
    main_description = analysis.get("mainDescription")
    objects: List[str] = analysis.get("objects") or []
    activities: List[str] = analysis.get("activities") or []
    colors_composition = analysis.get("colorsComposition")
    text_content = analysis.get("textContent")

    dominant_colors = []
    if colors_composition:
        dominant_colors = [c.strip() for c in colors_composition.split(",")][:3]

    return {
        "enhanced": True,
        "model": model,
        "analysis": analysis,
        # Legacy format for compatibility
        "caption": {"text": main_description, "confidence": confidence},
        "description": {
            "captions": [{"text": main_description, "confidence": confidence}]
        },
        "objects": [
            {
                "object": obj,
                "confidence": OBJECT_CONFIDENCE,
                # The model gives no locations
                "rectangle": {"x": 0, "y": 0, "w": 100, "h": 100},
            }
            for obj in objects
        ],
        "tags": [{"name": obj, "confidence": OBJECT_CONFIDENCE} for obj in objects]
        + [
            {"name": activity, "confidence": ACTIVITY_CONFIDENCE}
            for activity in activities
        ],
        "text": [text_content] if text_content else [],
        "color": {"dominantColors": dominant_colors},
        # Enhanced fields
        "sceneContext": analysis.get("sceneContext"),
        "activities": activities,
        "moodAtmosphere": analysis.get("moodAtmosphere"),
        "colorsComposition": colors_composition,
        "interestingDetails": analysis.get("interestingDetails") or [],
        "usage": usage,
    }


class EnhancedVisionService:
    """Image analysis through the multimodal chat deployment"""

    def __init__(self, openai_client=None, deployment_name: Optional[str] = None):
        self.client = openai_client or get_azure_clients().openai
        self.deployment_name = deployment_name or config.OPENAI_DEPLOYMENT_NAME

    def analyze_image_with_gpt4o(
        self, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> Dict[str, Any]:
        """Analyze an image and return the reshaped result"""
        try:
            if not self.client:
                raise RuntimeError("OpenAI client not initialized")

            image_base64 = base64.b64encode(image_bytes).decode("utf-8")
            image_url = f"data:{mime_type};base64,{image_base64}"

            logger.info("Starting enhanced image analysis with %s", self.deployment_name)

            response = self.client.chat.completions.create(
                model=self.deployment_name,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": ANALYSIS_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": image_url, "detail": "high"},
                            },
                        ],
                    }
                ],
                max_tokens=config.OPENAI_MAX_TOKENS,
                temperature=config.OPENAI_TEMPERATURE,
                response_format={"type": "json_object"},
            )

            analysis = extract_json_object(response.choices[0].message.content or "")
            usage = usage_to_dict(response.usage)

            logger.info(
                "Enhanced image analysis completed: tokensUsed=%s confidence=%s",
                (usage or {}).get("total_tokens"),
                analysis.get("confidence"),
            )

            return reshape_enhanced_analysis(analysis, self.deployment_name, usage)

        except Exception as e:
            logger.error("Enhanced vision analysis failed: %s", e)
            raise EnhancedAnalysisError(
                f"Enhanced vision analysis failed: {e}",
                quota_exceeded=is_quota_error(e),
                content_filtered=is_content_filter_error(e),
            ) from e

    def generate_enhanced_suggestions(self, analysis_result: Dict[str, Any]) -> List[str]:
        """Ask the model for image-specific conversation starters"""
        try:
            if not self.client or not analysis_result.get("enhanced"):
                return list(BASIC_SUGGESTIONS)

            analysis = analysis_result.get("analysis") or {}
            prompt = SUGGESTION_PROMPT.format(
                main_description=analysis.get("mainDescription"),
                scene_context=analysis_result.get("sceneContext"),
                activities=", ".join(analysis_result.get("activities") or []),
                mood=analysis_result.get("moodAtmosphere"),
                objects=", ".join(analysis.get("objects") or []),
                details=", ".join(analysis_result.get("interestingDetails") or []),
            )

            response = self.client.chat.completions.create(
                model=self.deployment_name,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=500,
                temperature=0.8,
                response_format={"type": "json_object"},
            )

            suggestions = extract_json_object(
                response.choices[0].message.content or ""
            ).get("suggestions")

            logger.info(
                "Enhanced suggestions generated: count=%s",
                len(suggestions) if suggestions else 0,
            )

            return suggestions or list(EMPTY_ANSWER_SUGGESTIONS)

        except Exception as e:
            logger.error("Enhanced suggestions generation failed: %s", e)
            return list(ERROR_SUGGESTIONS)
