"""
Prompt loader utility for managing LLM and image prompts from JSON files.
Centralized prompt management for easier maintenance and updates.
"""
import json
from pathlib import Path
from typing import Dict, Any, Optional, Union, List
import logging
from langchain_core.prompts import PromptTemplate

logger = logging.getLogger(__name__)


class PromptLoader:
    """Loads and manages prompts from JSON files."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Initialize the prompt loader."""
        self.prompts_dir = prompts_dir or Path(__file__).parent.parent / "prompts"
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _load_prompt_file(self, filename: str) -> Dict[str, Any]:
        """
        Load a prompt JSON file.

        Args:
            filename: Name of the JSON file (without .json extension)

        Returns:
            Dictionary containing prompts
        """
        if filename in self._cache:
            return self._cache[filename]

        filepath = self.prompts_dir / f"{filename}.json"

        if not filepath.exists():
            logger.error(f"Prompt file not found: {filepath}")
            return {}

        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                prompts = json.load(f)
                self._cache[filename] = prompts
                return prompts
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing prompt file {filepath}: {e}")
            return {}

    def get_llm_prompt(self, prompt_key: str) -> Dict[str, Any]:
        """
        Get an LLM prompt by key.

        Args:
            prompt_key: Key identifying the prompt (e.g., "search_recommend")

        Returns:
            Dictionary with prompt templates
        """
        prompts = self._load_prompt_file("llm_prompts")
        return prompts.get(prompt_key, {})

    def get_image_prompt(self, prompt_key: str) -> Dict[str, Any]:
        """
        Get an image prompt by key.

        Args:
            prompt_key: Key identifying the prompt (e.g., "generation")

        Returns:
            Dictionary with prompt templates
        """
        prompts = self._load_prompt_file("image_prompts")
        return prompts.get(prompt_key, {})

    def get_text(self, config: Dict[str, Any], field: str = "template") -> str:
        """Return a prompt field, joining line arrays."""
        value: Union[str, List[str]] = config.get(field, "")
        return "\n".join(value) if isinstance(value, list) else value

    def get_prompt_template(self, prompt_key: str, type: str = "llm") -> PromptTemplate:
        """
        Get a LangChain PromptTemplate object for the given key.

        Args:
            prompt_key: Key identifying the prompt
            type: Type of prompt file to look in ("llm", "image")

        Returns:
            LangChain PromptTemplate object
        """
        if type == "llm":
            config = self.get_llm_prompt(prompt_key)
        elif type == "image":
            config = self.get_image_prompt(prompt_key)
        else:
            config = {}

        if not config:
            logger.warning(f"Prompt key '{prompt_key}' not found in {type} prompts")
            return PromptTemplate.from_template("")

        return PromptTemplate.from_template(self.get_text(config))

    def render(self, prompt_key: str, type: str = "llm", **kwargs) -> str:
        """Load a prompt template and fill in its variables."""
        return self.get_prompt_template(prompt_key, type).format(**kwargs)


# Global instance
_prompt_loader: Optional[PromptLoader] = None


def get_prompt_loader() -> PromptLoader:
    """Get or create global PromptLoader instance."""
    global _prompt_loader
    if _prompt_loader is None:
        _prompt_loader = PromptLoader()
    return _prompt_loader
