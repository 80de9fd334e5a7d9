"""
Persona template registry with lazy, one-time loading.

Each persona lives in its own directory:

    personas/<key>/persona.json      phrase sets and templated wording
    personas/<key>/ordering.md       prompt body while taking the order
    personas/<key>/greeting.md       prompt body before the first order
    personas/<key>/acknowledgment.md prompt body around payment and close

Templates are read from disk the first time a persona is requested and
memoized by (persona, template kind). Population is guarded by a lock;
reads after warm-up never take it.
"""

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional, Union

from pos_assistant.config import settings
from pos_assistant.errors import PersonaNotFoundError
from pos_assistant.schemas.persona_schema import PersonaTemplate, TemplateKind

logger = logging.getLogger(__name__)

PERSONA_FILE = "persona.json"


class PersonaTemplateCache:
    """Immutable-after-load registry of persona templates."""

    def __init__(self, root: Union[str, Path, None] = None) -> None:
        self._root = Path(root or settings.persona_dir)
        self._personas: dict[str, PersonaTemplate] = {}
        self._bodies: dict[tuple[str, TemplateKind], str] = {}
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def get(self, persona_key: str) -> PersonaTemplate:
        """Return the persona, loading it from disk on first use."""
        template = self._personas.get(persona_key)
        if template is not None:
            return template
        with self._lock:
            template = self._personas.get(persona_key)
            if template is None:
                template = self._load(persona_key)
                for kind, body in template.bodies.items():
                    self._bodies[(persona_key, kind)] = body
                self._personas[persona_key] = template
        return template

    def body(self, persona_key: str, kind: TemplateKind) -> str:
        """Return the static prompt body for (persona, kind)."""
        body = self._bodies.get((persona_key, kind))
        if body is None:
            self.get(persona_key)
            body = self._bodies[(persona_key, kind)]
        return body

    def warm(self, persona_keys: Optional[Iterable[str]] = None) -> list[str]:
        """Load personas up front. Defaults to every persona under the root."""
        keys = list(persona_keys) if persona_keys is not None else self.available_personas()
        for key in keys:
            self.get(key)
        logger.info("Persona cache warmed: %s", keys)
        return keys

    def available_personas(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            child.name for child in self._root.iterdir()
            if child.is_dir() and (child / PERSONA_FILE).is_file()
        )

    def is_loaded(self, persona_key: str) -> bool:
        return persona_key in self._personas

    def _load(self, persona_key: str) -> PersonaTemplate:
        folder = self._root / persona_key
        persona_file = folder / PERSONA_FILE
        if not persona_file.is_file():
            raise PersonaNotFoundError(
                f"Persona '{persona_key}' not found under {self._root}. "
                f"Available: {self.available_personas()}"
            )

        ordering_path = folder / f"{TemplateKind.ORDERING.value}.md"
        if not ordering_path.is_file():
            raise PersonaNotFoundError(
                f"Persona '{persona_key}' has no {ordering_path.name}"
            )

        bodies: dict[TemplateKind, str] = {}
        for kind in TemplateKind:
            path = folder / f"{kind.value}.md"
            if path.is_file():
                bodies[kind] = path.read_text(encoding="utf-8").strip()
        ordering = bodies[TemplateKind.ORDERING]
        for kind in TemplateKind:
            bodies.setdefault(kind, ordering)

        raw = persona_file.read_text(encoding="utf-8")
        template = PersonaTemplate.model_validate_json(raw)
        template = template.model_copy(update={"key": persona_key, "bodies": bodies})
        logger.debug(
            "Loaded persona '%s' (%d completion signals, %d template kinds)",
            persona_key, len(template.completion_signals), len(bodies),
        )
        return template
