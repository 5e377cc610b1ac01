"""
Detection pattern registry.

Holds the declarative rule table that maps file triggers and content
signatures to tools. Rules are plain data, validated into frozen
DetectionPattern models once, and never mutated afterwards, so a single
registry can be shared by concurrent analyses.

Rule table shape (also used by JSON/TOML rule files under a top-level
``patterns`` key)::

    "React": {
        "category": "Frontend/Design",
        "files": ["package.json"],
        "patterns": [r'"react":\\s*"[^"]+"'],
        "deps": ["react"],
        "confidence": 0.95,
        "cost": 0,
    }
"""

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from stackprobe.config import parse_toml
from stackprobe.errors import ErrorCode, PatternError, invalid_pattern
from stackprobe.schemas import DetectionPattern, StackCategory

logger = logging.getLogger(__name__)

# Default rule table. Order matters: it is the iteration order of the
# registry and therefore the order detections are reported in.
DETECTION_PATTERNS: dict[str, dict[str, Any]] = {
    # Frontend frameworks & libraries
    "React": {
        "category": "Frontend/Design",
        "files": ["package.json"],
        "patterns": [r'"react":\s*"[^"]+"'],
        "deps": ["react"],
        "confidence": 0.95,
        "cost": 0,
    },
    "Next.js": {
        "category": "Frontend/Design",
        "files": ["package.json", "next.config.js", "next.config.mjs", "next.config.ts"],
        "patterns": [r'"next":\s*"[^"]+"', r"next\.config\."],
        "deps": ["next"],
        "confidence": 0.98,
        "cost": 0,
    },
    "Vue.js": {
        "category": "Frontend/Design",
        "files": ["package.json", "vue.config.js"],
        "patterns": [r'"vue":\s*"[^"]+"'],
        "deps": ["vue"],
        "confidence": 0.95,
        "cost": 0,
    },
    "Angular": {
        "category": "Frontend/Design",
        "files": ["package.json", "angular.json"],
        "patterns": [r'"@angular/core":\s*"[^"]+"'],
        "deps": ["@angular/core"],
        "confidence": 0.98,
        "cost": 0,
    },
    "Tailwind CSS": {
        "category": "Frontend/Design",
        "files": ["package.json", "tailwind.config.js", "tailwind.config.ts"],
        "patterns": [r'"tailwindcss":\s*"[^"]+"'],
        "deps": ["tailwindcss"],
        "confidence": 0.92,
        "cost": 0,
    },
    # Backend frameworks
    "Express.js": {
        "category": "Backend/Database",
        "files": ["package.json"],
        "patterns": [r'"express":\s*"[^"]+"'],
        "deps": ["express"],
        "confidence": 0.95,
        "cost": 0,
    },
    "FastAPI": {
        "category": "Backend/Database",
        "files": ["requirements.txt", "pyproject.toml"],
        "patterns": [r"fastapi[>=<]"],
        "confidence": 0.95,
        "cost": 0,
    },
    "Django": {
        "category": "Backend/Database",
        "files": ["requirements.txt", "manage.py", "settings.py"],
        "patterns": [r"Django[>=<]", r"django-"],
        "confidence": 0.98,
        "cost": 0,
    },
    "Flask": {
        "category": "Backend/Database",
        "files": ["requirements.txt"],
        "patterns": [r"Flask[>=<]"],
        "confidence": 0.95,
        "cost": 0,
    },
    "Ruby on Rails": {
        "category": "Backend/Database",
        "files": ["Gemfile", "config/application.rb"],
        "patterns": [r"gem ['\"]rails['\"]", r"Rails\.application"],
        "confidence": 0.98,
        "cost": 0,
    },
    "Laravel": {
        "category": "Backend/Database",
        "files": ["composer.json", "artisan"],
        "patterns": [r'"laravel/framework"', r"Illuminate\\"],
        "confidence": 0.98,
        "cost": 0,
    },
    # Databases
    "PostgreSQL": {
        "category": "Backend/Database",
        "files": ["package.json", "requirements.txt", "docker-compose.yml", ".env"],
        "patterns": [r'"pg":\s*"[^"]+"', r"psycopg2", r"postgres:", r"POSTGRES_"],
        "confidence": 0.85,
        "cost": 15,
    },
    "MongoDB": {
        "category": "Backend/Database",
        "files": ["package.json", "requirements.txt", "docker-compose.yml"],
        "patterns": [r'"mongoose":\s*"[^"]+"', r"pymongo", r"mongo:", r"mongodb:"],
        "confidence": 0.85,
        "cost": 25,
    },
    "Redis": {
        "category": "Backend/Database",
        "files": ["package.json", "requirements.txt", "docker-compose.yml"],
        "patterns": [r'"redis":\s*"[^"]+"', r"redis[>=<]", r"redis:"],
        "confidence": 0.85,
        "cost": 10,
    },
    "MySQL": {
        "category": "Backend/Database",
        "files": ["package.json", "requirements.txt", "docker-compose.yml"],
        "patterns": [r'"mysql":\s*"[^"]+"', r"PyMySQL", r"mysql:"],
        "confidence": 0.85,
        "cost": 15,
    },
    # Backend as a service
    "Supabase": {
        "category": "Backend/Database",
        "files": ["package.json"],
        "patterns": [r'"@supabase/supabase-js":\s*"[^"]+"'],
        "deps": ["@supabase/supabase-js"],
        "confidence": 0.98,
        "cost": 25,
    },
    "Firebase": {
        "category": "Backend/Database",
        "files": ["package.json", "firebase.json"],
        "patterns": [r'"firebase":\s*"[^"]+"', r"firebase\.initializeApp"],
        "confidence": 0.95,
        "cost": 25,
    },
    "AWS SDK": {
        "category": "Backend/Database",
        "files": ["package.json", "requirements.txt"],
        "patterns": [r'"aws-sdk":\s*"[^"]+"', r"boto3[>=<]"],
        "confidence": 0.90,
        "cost": 50,
    },
    # DevOps & deployment
    "Docker": {
        "category": "DevOps/Deployment",
        "files": ["Dockerfile", "docker-compose.yml", ".dockerignore"],
        "patterns": [r"FROM ", r"docker-compose", r"COPY|RUN|EXPOSE"],
        "confidence": 0.98,
        "cost": 0,
    },
    "Kubernetes": {
        "category": "DevOps/Deployment",
        "files": ["k8s/", "kubernetes/", "deployment.yaml", "service.yaml"],
        "patterns": [r"apiVersion:\s*apps/v1", r"kind:\s*Deployment", r"kind:\s*Service"],
        "confidence": 0.95,
        "cost": 100,
    },
    "Terraform": {
        "category": "DevOps/Deployment",
        "files": ["main.tf", "variables.tf", "terraform/"],
        "patterns": [r'resource "', r'provider "', r"terraform\s*\{"],
        "confidence": 0.98,
        "cost": 0,
    },
    "GitHub Actions": {
        "category": "DevOps/Deployment",
        "files": [".github/workflows/"],
        "patterns": [r"on:\s*(push|pull_request)", r"runs-on:", r"steps:"],
        "confidence": 0.95,
        "cost": 0,
    },
    "Vercel": {
        "category": "DevOps/Deployment",
        "files": ["vercel.json", "package.json"],
        "patterns": [r"vercel", r'"@vercel/[^"]+"'],
        "confidence": 0.90,
        "cost": 20,
    },
    "Netlify": {
        "category": "DevOps/Deployment",
        "files": ["netlify.toml", "_redirects", "_headers"],
        "patterns": [r"\[build\]", r"command\s*=", r"publish\s*="],
        "confidence": 0.95,
        "cost": 15,
    },
    # Development tools
    "TypeScript": {
        "category": "IDE/Development",
        "files": ["package.json", "tsconfig.json"],
        "patterns": [r'"typescript":\s*"[^"]+"', r'"@types/[^"]+"'],
        "confidence": 0.95,
        "cost": 0,
    },
    "ESLint": {
        "category": "IDE/Development",
        "files": ["package.json", ".eslintrc", ".eslintrc.js"],
        "patterns": [r'"eslint":\s*"[^"]+"'],
        "confidence": 0.90,
        "cost": 0,
    },
    "Prettier": {
        "category": "IDE/Development",
        "files": ["package.json", ".prettierrc"],
        "patterns": [r'"prettier":\s*"[^"]+"'],
        "confidence": 0.90,
        "cost": 0,
    },
    "Jest": {
        "category": "IDE/Development",
        "files": ["package.json", "jest.config.js"],
        "patterns": [r'"jest":\s*"[^"]+"'],
        "confidence": 0.90,
        "cost": 0,
    },
    "Cypress": {
        "category": "IDE/Development",
        "files": ["package.json", "cypress.json", "cypress/"],
        "patterns": [r'"cypress":\s*"[^"]+"'],
        "confidence": 0.95,
        "cost": 75,
    },
    # Payments
    "Stripe": {
        "category": "Payment Platforms",
        "files": ["package.json", ".env", "requirements.txt"],
        "patterns": [r'"stripe":\s*"[^"]+"', r"stripe[>=<]", r"STRIPE_"],
        "confidence": 0.95,
        "cost": 0,  # Transaction-based
    },
    # AI/ML
    "OpenAI": {
        "category": "AI Coding Tools",
        "files": ["package.json", "requirements.txt", ".env"],
        "patterns": [r'"openai":\s*"[^"]+"', r"openai[>=<]", r"OPENAI_API_KEY"],
        "confidence": 0.90,
        "cost": 50,
    },
}

# Detector categories mapped onto the coarser set the UI filters by
UI_CATEGORY_MAP: dict[str, str] = {
    "Frontend/Design": "Frontend",
    "Backend/Database": "Backend",
    "DevOps/Deployment": "DevOps",
    "IDE/Development": "Testing",
    "AI Coding Tools": "Analytics",
    "Payment Platforms": "Backend",
    "Communication/Collaboration": "Analytics",
    "Testing/QA": "Testing",
    "Security/Monitoring": "Security",
    "Analytics/Tracking": "Analytics",
    "Data/Storage": "Database",
}

DEFAULT_UI_CATEGORY = "Frontend"


def normalize_category_for_ui(category: str) -> str:
    """Map a detector category onto the UI category set, defaulting to Frontend."""
    return UI_CATEGORY_MAP.get(category, DEFAULT_UI_CATEGORY)


def pattern_from_entry(name: str, entry: dict[str, Any]) -> DetectionPattern:
    """
    Build a DetectionPattern from a rule-table entry.

    Raises:
        PatternError: If the entry is missing fields or holds invalid values
    """
    if not isinstance(entry, dict):
        raise invalid_pattern(name, "rule must be a table of fields")
    try:
        return DetectionPattern(
            name=name,
            category=entry.get("category"),
            file_triggers=tuple(entry.get("files") or ()),
            content_patterns=tuple(entry.get("patterns") or ()),
            dependency_keys=tuple(entry.get("deps") or ()),
            base_confidence=entry.get("confidence"),
            cost_estimate=entry.get("cost", 0),
        )
    except ValidationError as e:
        raise invalid_pattern(name, str(e)) from e


def pattern_to_entry(pattern: DetectionPattern) -> dict[str, Any]:
    """Inverse of pattern_from_entry."""
    entry: dict[str, Any] = {
        "category": pattern.category.value,
        "files": list(pattern.file_triggers),
        "patterns": list(pattern.content_patterns),
        "confidence": pattern.base_confidence,
        "cost": pattern.cost_estimate,
    }
    if pattern.dependency_keys:
        entry["deps"] = list(pattern.dependency_keys)
    return entry


class PatternRegistry:
    """
    Read-only, ordered collection of detection rules.

    Iteration yields rules in declaration order. Construction validates the
    whole table; a malformed rule raises PatternError rather than being
    skipped.
    """

    def __init__(self, patterns: Iterable[DetectionPattern]) -> None:
        self._patterns: tuple[DetectionPattern, ...] = tuple(patterns)
        by_name: dict[str, DetectionPattern] = {}
        for pattern in self._patterns:
            if pattern.name in by_name:
                raise PatternError(
                    message=f"Duplicate detection pattern: {pattern.name}",
                    code=ErrorCode.PATTERN_DUPLICATE,
                    pattern_name=pattern.name,
                )
            by_name[pattern.name] = pattern
        self._by_name = by_name

    @classmethod
    def from_table(cls, table: dict[str, dict[str, Any]]) -> "PatternRegistry":
        """Build a registry from a name -> rule-entry mapping."""
        return cls(pattern_from_entry(name, entry) for name, entry in table.items())

    @classmethod
    def default(cls) -> "PatternRegistry":
        """Registry over the built-in rule table."""
        return cls.from_table(DETECTION_PATTERNS)

    @classmethod
    def from_file(cls, path: Path) -> "PatternRegistry":
        """
        Load a registry from a JSON or TOML rule file.

        The file holds a top-level ``patterns`` table keyed by tool name.

        Raises:
            PatternError: If the file cannot be read or parsed, or holds bad rules
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PatternError(
                message=f"Failed to read pattern file: {e}",
                code=ErrorCode.PATTERN_FILE_INVALID,
                source_path=str(path),
            ) from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(content)
            elif path.suffix.lower() == ".toml":
                data = parse_toml(content)
            else:
                raise ValueError(f"unsupported rule file type: {path.suffix or '<none>'}")
        except Exception as e:
            raise PatternError(
                message=f"Failed to parse pattern file: {e}",
                code=ErrorCode.PATTERN_FILE_INVALID,
                source_path=str(path),
            ) from e

        table = data.get("patterns") if isinstance(data, dict) else None
        if not isinstance(table, dict):
            raise PatternError(
                message="Pattern file has no 'patterns' table",
                code=ErrorCode.PATTERN_FILE_INVALID,
                source_path=str(path),
            )

        registry = cls.from_table(table)
        logger.info(f"Loaded {len(registry)} detection patterns from {path}")
        return registry

    def to_dict(self) -> dict[str, Any]:
        """Serializable form, loadable again with from_file/from_table."""
        return {"patterns": {p.name: pattern_to_entry(p) for p in self._patterns}}

    def __iter__(self) -> Iterator[DetectionPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def get(self, name: str) -> DetectionPattern | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return [p.name for p in self._patterns]

    def categories(self) -> list[StackCategory]:
        """Distinct categories in first-seen order."""
        seen: dict[StackCategory, None] = {}
        for pattern in self._patterns:
            seen.setdefault(pattern.category, None)
        return list(seen)
