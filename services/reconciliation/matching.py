"""
Email matching rules for identity linking.

An ``EmailMatcher`` combines an exact, case-sensitive allow-list of alias
addresses with an optional pattern whose semantics are chosen explicitly via
``PatternMode``. The same rule is available as a Python predicate
(``matches``) and as a parameterized SQL fragment (``to_sql``) so that what
the database updates and what the tests assert stay in step.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from sqlalchemy import bindparam

from services.common.helpers.email import clean_email_list, split_email

LIKE_ESCAPE = "\\"


class PatternMode(str, Enum):
    """How ``EmailMatcher.pattern`` is compared against an address."""
    SUBSTRING = "substring"              # anywhere in the full address
    LOCAL_SUBSTRING = "local_substring"  # anywhere in the part before "@"
    LOCAL_PREFIX = "local_prefix"        # start of the part before "@"


def escape_like(value: str) -> str:
    """
    Escape LIKE metacharacters so the value matches literally.

    Examples:
        >>> escape_like("ali_1%")
        'ali\\\\_1\\\\%'
    """
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


@dataclass(frozen=True)
class EmailMatcher:
    """
    Which contact emails belong to the target donor.

    Attributes:
        aliases: Exact addresses, compared case-sensitively
        pattern: Optional literal fragment matched according to ``pattern_mode``
        pattern_mode: Matching semantics for ``pattern``
    """
    aliases: FrozenSet[str] = field(default_factory=frozenset)
    pattern: Optional[str] = None
    pattern_mode: PatternMode = PatternMode.SUBSTRING

    def __post_init__(self):
        if self.pattern is not None and not self.pattern.strip():
            object.__setattr__(self, "pattern", None)
        if not self.aliases and self.pattern is None:
            raise ValueError("EmailMatcher needs at least one alias or a pattern")
        if self.pattern is not None and "@" in self.pattern and self.pattern_mode != PatternMode.SUBSTRING:
            raise ValueError(f"Pattern '{self.pattern}' contains '@' but mode is {self.pattern_mode.value}")

    @classmethod
    def build(
        cls,
        aliases: Iterable[str] = (),
        pattern: Optional[str] = None,
        pattern_mode: PatternMode = PatternMode.SUBSTRING,
    ) -> "EmailMatcher":
        """Build a matcher from raw operator input, validating every alias."""
        return cls(
            aliases=frozenset(clean_email_list(aliases)),
            pattern=pattern.strip() if pattern else None,
            pattern_mode=PatternMode(pattern_mode),
        )

    def matches(self, email: Optional[str]) -> bool:
        """Evaluate the rule against a single address."""
        if not email:
            return False
        if email in self.aliases:
            return True
        if self.pattern is None:
            return False

        if self.pattern_mode == PatternMode.SUBSTRING:
            return self.pattern in email

        local, domain = split_email(email)
        if not domain:
            return False
        if self.pattern_mode == PatternMode.LOCAL_PREFIX:
            return local.startswith(self.pattern)
        return self.pattern in local

    def like_expression(self) -> Optional[str]:
        """LIKE pattern equivalent to ``pattern``/``pattern_mode``."""
        if self.pattern is None:
            return None
        literal = escape_like(self.pattern)
        if self.pattern_mode == PatternMode.SUBSTRING:
            return f"%{literal}%"
        if self.pattern_mode == PatternMode.LOCAL_PREFIX:
            return f"{literal}%@%"
        return f"%{literal}%@%"

    def to_sql(self, column: str) -> Tuple[str, Dict[str, Any], list]:
        """
        Render the rule as a SQL boolean expression over ``column``.

        Returns:
            Tuple of (sql_fragment, params, bindparams). ``bindparams`` must be
            attached to the ``text()`` statement (the alias list is expanding).

        Note:
            LIKE is case-sensitive on PostgreSQL, matching ``matches``.
        """
        clauses = []
        params: Dict[str, Any] = {}
        binds = []

        if self.aliases:
            clauses.append(f"{column} IN :match_aliases")
            params["match_aliases"] = sorted(self.aliases)
            binds.append(bindparam("match_aliases", expanding=True))

        like = self.like_expression()
        if like is not None:
            clauses.append(f"{column} LIKE :match_pattern ESCAPE '{LIKE_ESCAPE}'")
            params["match_pattern"] = like

        return "(" + " OR ".join(clauses) + ")", params, binds

    def describe(self) -> str:
        """Human-readable description for console output."""
        parts = []
        if self.aliases:
            parts.append("aliases=" + ", ".join(sorted(self.aliases)))
        if self.pattern is not None:
            parts.append(f"pattern={self.pattern!r} ({self.pattern_mode.value})")
        return "; ".join(parts)
