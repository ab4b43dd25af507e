"""
Environment Variable Validator

Checks that the variables an app declares in its .env.example are present
before startup, and produces one readable error listing everything missing.
"""

import os
import re
from pathlib import Path
from typing import Dict, List


class EnvValidationError(Exception):
    """Raised when environment validation fails"""
    pass


class EnvValidator:
    """Validates environment variables against a .env.example file"""

    def __init__(self, env_example_path: Path):
        """
        Initialize the validator

        Args:
            env_example_path: Path to the app's .env.example
        """
        self.env_example_path = Path(env_example_path)
        self.errors: List[str] = []

    def parse_env_example(self) -> Dict[str, dict]:
        """
        Parse the .env.example file and extract variable definitions

        A variable is required unless the comment block above it mentions
        'optional'.

        Returns:
            Dict mapping variable names to {'required', 'description', 'example'}
        """
        if not self.env_example_path.exists():
            return {}

        variables = {}
        current_comments = []

        with open(self.env_example_path, 'r') as f:
            for line in f:
                line = line.rstrip()

                if not line:
                    current_comments = []
                    continue

                if line.startswith('#'):
                    current_comments.append(line.lstrip('#').strip())
                    continue

                match = re.match(r'^([A-Z_][A-Z0-9_]*)=(.*)$', line)
                if match:
                    description = ' '.join(current_comments)
                    variables[match.group(1)] = {
                        'required': 'optional' not in description.lower(),
                        'description': description,
                        'example': match.group(2),
                    }
                    current_comments = []

        return variables

    def missing_variables(self) -> List[str]:
        """Return the names of required variables that are unset or empty"""
        self.errors = []
        missing = []

        for var_name, metadata in self.parse_env_example().items():
            if not metadata['required']:
                continue
            if not os.environ.get(var_name):
                missing.append(var_name)
                self.errors.append(
                    f"Missing required variable: {var_name}\n"
                    f"   Description: {metadata['description']}\n"
                    f"   Example: {var_name}={metadata['example']}"
                )

        return missing

    def validate(self) -> bool:
        """
        Run validation

        Raises:
            EnvValidationError if any required variable is missing
        """
        if self.missing_variables():
            lines = ["Environment Variable Validation Failed", ""]
            lines.extend(self.errors)
            lines.extend([
                "",
                f"Copy {self.env_example_path} to .env and fill in the values.",
            ])
            raise EnvValidationError("\n".join(lines))
        return True


def validate_env(env_example_path: Path) -> bool:
    """Convenience wrapper: validate the environment against one .env.example"""
    return EnvValidator(env_example_path).validate()
