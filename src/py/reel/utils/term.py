from typing import ClassVar
import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False


class Term:
	"""ANSI escape sequences, each helper takes an `enabled` flag so that
	the same code path renders both the colored and the plain variant."""

	RESET: ClassVar[str] = "\033[0m"

	# 256-color palette entries
	BLUE: ClassVar[int] = 33
	GREEN: ClassVar[int] = 34
	YELLOW: ClassVar[int] = 220
	RED: ClassVar[int] = 160

	@staticmethod
	def Color(color: int, enabled: bool = True) -> str:
		return f"\033[0;38;5;{color}m" if enabled else ""

	@staticmethod
	def Paint(text: str, color: int | None, enabled: bool = True) -> str:
		"""Wraps `text` in the given color, returns it as-is when disabled or
		when there is no color."""
		if color is None or not enabled:
			return text
		return f"{Term.Color(color)}{text}{Term.RESET}"


# EOF
