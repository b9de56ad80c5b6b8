import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = """
YOUR TASK:
You are an assistant helping this user. Generate a helpful question that makes the user think constructively about their task.

You will receive the TRANSCRIPT, recent user SCREENSHOTS and a list of all PREVIOUS_AGENT_MESSAGES.

RESPONSE FORMAT:
Return your response in JSON format. Only return JSON format without any additional MD wrapper code blocks.
DO NOT add "json" or any quotes around the JSON response!
Here is an example of the JSON format:
{
    "message": "Your response"
}
""".strip()


def load_prompt(path: str) -> str:
    """Last saved system prompt, or the default when nothing was saved yet."""
    if not path or not os.path.exists(path):
        return DEFAULT_PROMPT
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        logger.error(f"Could not read saved prompt {path}: {e}")
        return DEFAULT_PROMPT


def save_prompt(path: str, prompt: str) -> None:
    if not path:
        return
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(prompt)
    except OSError as e:
        logger.error(f"Could not save prompt to {path}: {e}")
