"""Conversational Q&A over image analysis results.

Builds the system prompt from whichever analysis fields are present, and
derives follow-up question suggestions from the same fields.
"""

import logging
from typing import Any, Dict, List, Optional

from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients
from azure_lens.services.enhanced_vision_service import usage_to_dict

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 6


def _rect(item: Dict[str, Any]) -> Dict[str, Any]:
    return item.get("rectangle") or item.get("boundingBox") or {}


def build_analysis_context(results: Dict[str, Any]) -> str:
    """Render standard analysis results as a plain text block"""
    context = ""

    caption = results.get("caption")
    if caption:
        if isinstance(caption, dict):
            context += (
                f"Image Description: {caption.get('text')} "
                f"(confidence: {caption.get('confidence')})\n\n"
            )
        else:
            context += f"Image Description: {caption}\n\n"

    captions = (results.get("description") or {}).get("captions")
    if captions:
        context += "Detailed Captions:\n"
        for cap in captions:
            context += f"- {cap.get('text')} (confidence: {cap.get('confidence')})\n"
        context += "\n"

    objects = results.get("objects") or []
    if objects:
        context += "Detected Objects:\n"
        for obj in objects:
            rect = _rect(obj)
            context += (
                f"- {obj.get('object') or obj.get('name')} at location "
                f"({rect.get('x')}, {rect.get('y')}) with confidence {obj.get('confidence')}\n"
            )
        context += "\n"

    people = results.get("people") or []
    if people:
        context += f"People Detected: {len(people)} person(s)\n"
        for i, person in enumerate(people, 1):
            rect = _rect(person)
            context += f"- Person {i} at location ({rect.get('x')}, {rect.get('y')})\n"
        context += "\n"

    tags = results.get("tags") or []
    if tags:
        tag_list = ", ".join(f"{tag.get('name')} ({tag.get('confidence')})" for tag in tags)
        context += f"Tags: {tag_list}\n\n"

    text = results.get("text")
    if text:
        joined = " ".join(text) if isinstance(text, list) else text
        context += f'Text Found in Image:\n"{joined}"\n\n'

    color = results.get("color")
    if color:
        context += "Color Analysis:\n"
        if color.get("dominantColorForeground"):
            context += f"- Foreground: {color['dominantColorForeground']}\n"
        if color.get("dominantColorBackground"):
            context += f"- Background: {color['dominantColorBackground']}\n"
        if color.get("dominantColors"):
            context += f"- Dominant colors: {', '.join(color['dominantColors'])}\n"
        context += "\n"

    return context


def is_enhanced(results: Dict[str, Any]) -> bool:
    analysis = results.get("analysis")
    return bool(results.get("enhanced") and analysis and isinstance(analysis, dict))


def _join(values: Optional[List[str]], default: str, sep: str = ", ") -> str:
    return sep.join(values) if values else default


def build_enhanced_system_prompt(results: Dict[str, Any]) -> str:
    analysis = results.get("analysis") or {}

    return f"""You are an engaging, knowledgeable AI assistant helping users explore and understand their image. You have access to a comprehensive AI analysis of the image.

YOUR PERSONALITY:
- Be conversational, enthusiastic, and insightful
- Use descriptive, vivid language
- Show curiosity and help users discover new details
- Be like a knowledgeable friend sharing insights

IMAGE ANALYSIS DETAILS:
Main Description: {analysis.get('mainDescription')}
Scene Context: {results.get('sceneContext')}
Mood/Atmosphere: {results.get('moodAtmosphere')}
Activities: {_join(results.get('activities'), 'None specified')}
Key Objects: {_join(analysis.get('objects'), 'None detected')}
Text Content: {_join(results.get('text'), 'No text detected', ' ')}
Colors & Composition: {results.get('colorsComposition')}
Interesting Details: {_join(results.get('interestingDetails'), 'None noted')}

YOUR CAPABILITIES:
- Answer questions about what's visible in the image
- Explain the mood, atmosphere, and composition
- Discuss the story or narrative the image tells
- Help identify interesting details users might miss
- Provide context about the setting and activities
- Interpret the artistic or emotional elements

CONVERSATION STYLE:
- Be enthusiastic and descriptive
- Use sensory language when appropriate
- Ask follow-up questions to engage the user
- Share insights that might surprise or delight
- Reference specific details from the analysis
- Be encouraging and positive

Always base responses on the analysis provided. If asked about something not in the analysis, creatively suggest what you can discuss instead."""


def build_standard_system_prompt(analysis_context: str) -> str:
    return f"""You are an AI assistant that helps users understand and explore their image analysis results.

You have access to detailed analysis results from Azure Computer Vision API including:
- Image descriptions and captions
- Detected objects and their locations
- People detection and analysis
- Text recognition (OCR)
- Tags and categories
- Color analysis

Your role is to:
1. Answer questions about what's in the image based on the analysis results
2. Explain the AI analysis in simple, conversational terms
3. Help users discover interesting details they might have missed
4. Provide insights about composition, objects, text, or people in the image
5. Be conversational and engaging while staying accurate to the analysis data

Always base your responses on the provided analysis results. If asked about something not in the analysis, politely explain what information is available.

Here are the current image analysis results:
{analysis_context}"""


def build_system_prompt(results: Dict[str, Any]) -> str:
    if is_enhanced(results):
        return build_enhanced_system_prompt(results)
    return build_standard_system_prompt(build_analysis_context(results))


def build_messages(
    question: str,
    results: Dict[str, Any],
    conversation_history: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, str]]:
    """System prompt, then prior turns, then the new question"""
    messages = [{"role": "system", "content": build_system_prompt(results)}]

    for msg in conversation_history or []:
        messages.append(
            {
                "role": "user" if msg.get("role") == "user" else "assistant",
                "content": msg.get("content") or "",
            }
        )

    messages.append({"role": "user", "content": question})
    return messages


def generate_enhanced_suggestions(results: Dict[str, Any]) -> List[str]:
    suggestions = []
    analysis = results.get("analysis") or {}

    if analysis.get("mainDescription"):
        suggestions.append("What story does this image tell?")
        suggestions.append("What draws your attention most in this scene?")

    activities = results.get("activities") or []
    if activities:
        suggestions.append(f"Tell me more about the {activities[0]} happening here")
        suggestions.append("What might happen next in this scene?")

    if results.get("moodAtmosphere"):
        suggestions.append("How does this image make you feel?")
        suggestions.append("What creates the mood in this image?")

    if results.get("interestingDetails"):
        suggestions.append("What's the most interesting detail you notice?")
        suggestions.append("What details might I have missed?")

    if results.get("colorsComposition"):
        suggestions.append("What makes this image visually appealing?")
        suggestions.append("How do the colors work together?")

    if results.get("sceneContext"):
        suggestions.append("What does the setting tell us about this moment?")
        suggestions.append("If you were there, what would you notice first?")

    return suggestions[:MAX_SUGGESTIONS]


def generate_question_suggestions(results: Dict[str, Any]) -> List[str]:
    """Follow-up questions derived from whichever analysis fields are present"""
    if is_enhanced(results):
        return generate_enhanced_suggestions(results)

    suggestions = [
        "What do you see in this image?",
        "Can you describe the main subject?",
    ]

    objects = results.get("objects") or []
    if objects:
        first = objects[0].get("object") or objects[0].get("name")
        suggestions.append(f"Tell me more about the {first} in the image")
        if len(objects) > 1:
            suggestions.append("What's the relationship between the objects?")

    people = results.get("people") or []
    if people:
        suggestions.append("What can you tell me about the people in the image?")
        if len(people) > 1:
            suggestions.append("How many people are in the image and where are they?")

    if results.get("text"):
        suggestions.append("What does the text in the image say?")
        suggestions.append("Can you explain the meaning of the text?")

    suggestions.append("What are the dominant colors?")
    suggestions.append("How would you describe the composition?")
    suggestions.append("What's the setting or location?")
    suggestions.append("What might be happening in this scene?")

    return suggestions[:MAX_SUGGESTIONS]


class ChatService:
    """Answers questions about an analysed image with the chat deployment"""

    def __init__(self, openai_client=None, deployment_name: Optional[str] = None):
        self.client = openai_client or get_azure_clients().openai
        self.deployment_name = deployment_name or config.OPENAI_DEPLOYMENT_NAME

    def ask(
        self,
        question: str,
        results: Dict[str, Any],
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Return the answer text and token usage.

        Raises:
            RuntimeError: the client is missing or the model returned no answer.
        """
        if not self.client:
            raise RuntimeError("OpenAI client not initialized")

        messages = build_messages(question, results, conversation_history)

        logger.info(
            "Sending chat request to Azure OpenAI: messageCount=%d question=%s",
            len(messages),
            question[:100],
        )

        response = self.client.chat.completions.create(
            model=self.deployment_name,
            messages=messages,
            max_tokens=config.OPENAI_MAX_TOKENS,
            temperature=config.OPENAI_TEMPERATURE,
            stream=False,
        )

        answer = response.choices[0].message.content if response.choices else None
        if not answer:
            raise RuntimeError("No response received from OpenAI")

        usage = usage_to_dict(response.usage)

        logger.info("Chat response generated successfully")
        return {"answer": answer, "usage": usage}
