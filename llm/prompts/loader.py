"""Prompt loading and management."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from logger import get_logger

logger = get_logger()


class PromptManager:
    """Manages loading and rendering of prompts from YAML files."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Initialize the prompt manager.

        Args:
            prompts_dir: Directory containing prompt YAML files.
                        Defaults to llm/prompts/ in the project.
        """
        self.prompts_dir = prompts_dir or Path(__file__).parent
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load_prompt(self, prompt_name: str) -> Dict[str, Any]:
        """Load a prompt configuration from YAML file.

        Args:
            prompt_name: Name of the prompt file (without .yaml extension).

        Returns:
            Dictionary containing prompt configuration.

        Raises:
            FileNotFoundError: If prompt file doesn't exist.
            yaml.YAMLError: If YAML is invalid.
        """
        if prompt_name in self._cache:
            return self._cache[prompt_name]

        prompt_file = self.prompts_dir / f"{prompt_name}.yaml"

        if not prompt_file.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

        logger.debug(f"Loading prompt from {prompt_file}")

        with open(prompt_file, "r") as f:
            prompt_config = yaml.safe_load(f)

        self._cache[prompt_name] = prompt_config

        return prompt_config

    def render_prompt(self, prompt_name: str, variables: Dict[str, Any]) -> str:
        """Load and render a prompt into a single request text.

        The classifier takes one user turn, so the instructions and the
        rendered template are joined with a blank line.

        Args:
            prompt_name: Name of the prompt to load.
            variables: Dictionary of variables to substitute in the template.
                       Literal braces in templates are written doubled.

        Returns:
            The rendered prompt text.
        """
        prompt_config = self.load_prompt(prompt_name)

        instructions = prompt_config.get("instructions", "").strip()
        template = prompt_config.get("template", "")

        body = template.format(**variables).strip()
        if not instructions:
            return body
        return f"{instructions}\n\n{body}"

    def get_option(self, prompt_name: str, key: str, default: Any = None) -> Any:
        """Read a value from a prompt's options section (e.g. mode notes)."""
        return self.load_prompt(prompt_name).get("options", {}).get(key, default)
