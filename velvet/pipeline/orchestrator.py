"""Pipeline orchestrator: runs one creative cycle end-to-end and owns the session.

Cycle flow:
  1. Fresh run: clear log, draft, blueprint and chat. Remix: record a REMIX
     memory event and move to DRAFTING.
  2. No blueprint (or no previous draft to remix): plan a Blueprint from the
     profile + newest memory events, then draft from it. Otherwise remix the
     previous draft against the existing blueprint.
  3. Publish the draft immediately with empty image fields.
  4. Render the hero image, then every product image concurrently. Each
     product task patches only its own slot as soon as it finishes.
  5. Verify the illustrated draft.
  6. Aligned → COMPLETE. Misaligned → refine, splice the original images back
     onto the refined draft, force aligned and bump the score (min(S+15, 99)).
     Re-verification between refinements is opt-in and always bounded.
  7. Any failure → log, record a CycleFailure with its FailureKind, back to IDLE.
     Whatever was already published stays.

Side channel: every user action appends a MemoryEvent; every third event
schedules a background drift check that may patch the live profile.

All reads and writes of the shared session state go through self._lock and
never hold it across an await.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable
from typing import Literal, TypeVar

from pydantic import BaseModel, Field

from velvet import agents
from velvet.llm import FailureKind, GenerationError, GenerativeService, ImageAsset
from velvet.models import (
    AgentStage,
    Blueprint,
    ChatMessage,
    DriftAlert,
    EventStatus,
    ExperienceData,
    InteractionType,
    LogEntry,
    MemoryEvent,
    PreferenceDrift,
    UserProfile,
    VerificationResult,
)
from velvet.pipeline.memory import apply_drift, drift_due, new_event
from velvet.prompts import HISTORY_WINDOW, PromptError
from velvet.storage import MemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

REFINE_SCORE_BONUS = 15
REFINE_SCORE_CAP = 99

CopyTarget = Literal["headline", "subheadline"]
ImageTarget = Literal["hero", "product"]

# Failures a user-initiated tool call absorbs instead of raising.
_TOOL_ERRORS = (GenerationError, PromptError)


class CycleFailure(BaseModel):
    """Why the last cycle stopped short of COMPLETE."""

    kind: FailureKind
    stage: AgentStage
    message: str


class SessionState(BaseModel):
    """Everything the presentation layer renders."""

    profile: UserProfile
    stage: AgentStage = AgentStage.IDLE
    logs: list[LogEntry] = Field(default_factory=list)
    blueprint: Blueprint | None = None
    draft: ExperienceData | None = None
    chat_history: list[ChatMessage] = Field(default_factory=list)
    memory: list[MemoryEvent] = Field(default_factory=list)
    drift_alert: DriftAlert | None = None
    failure: CycleFailure | None = None
    has_thumbnail: bool = False


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def trust_refinement(verification: VerificationResult) -> VerificationResult:
    """The verification attached to a refined draft that was not re-verified."""
    return verification.model_copy(update={
        "aligned": True,
        "score": min(verification.score + REFINE_SCORE_BONUS, REFINE_SCORE_CAP),
    })


def splice_images(refined: ExperienceData, source: ExperienceData) -> ExperienceData:
    """Carry hero and per-index product image URLs from `source` onto `refined`."""
    source_concepts = source.content.product_concepts
    concepts = [
        c.model_copy(update={
            "image_url": source_concepts[i].image_url if i < len(source_concepts) else None,
        })
        for i, c in enumerate(refined.content.product_concepts)
    ]
    content = refined.content.model_copy(update={
        "hero_image_url": source.content.hero_image_url,
        "product_concepts": concepts,
    })
    return refined.model_copy(update={"content": content})


def _without_images(draft: ExperienceData) -> ExperienceData:
    concepts = [c.model_copy(update={"image_url": None}) for c in draft.content.product_concepts]
    content = draft.content.model_copy(update={"hero_image_url": None, "product_concepts": concepts})
    return draft.model_copy(update={"content": content, "verification": None})


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class Orchestrator:
    """Stateful controller for one person's session.

    Args:
        profile:              The confirmed profile. Its name keys the memory store.
        service:              Generative service used for every call.
        store:                Durable memory store. Memory is loaded from it once, here.
        call_timeout:         Seconds before any single generative call fails with TIMEOUT.
        refine_passes:        Maximum refinements per cycle.
        reverify_refinements: Re-verify each refined draft instead of trusting it.
    """

    def __init__(
        self,
        profile: UserProfile,
        service: GenerativeService,
        store: MemoryStore,
        *,
        call_timeout: float = 120.0,
        refine_passes: int = 1,
        reverify_refinements: bool = False,
    ) -> None:
        self._service = service
        self._store = store
        self._user_name = profile.name
        self._call_timeout = call_timeout
        self._refine_passes = max(1, refine_passes)
        self._reverify = reverify_refinements
        self._lock = threading.Lock()
        self._state = SessionState(profile=profile)
        self._thumbnail: ImageAsset | None = None
        self._background: set[asyncio.Task] = set()

        events = store.load(self._user_name)
        if events:
            self._state.memory = events
            self.add_log(
                AgentStage.IDLE,
                f"Long-Horizon Memory loaded: {len(events)} past interactions found.",
            )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def stage(self) -> AgentStage:
        return self._state.stage

    @property
    def profile(self) -> UserProfile:
        return self._state.profile

    @property
    def draft(self) -> ExperienceData | None:
        return self._state.draft

    @property
    def blueprint(self) -> Blueprint | None:
        return self._state.blueprint

    @property
    def logs(self) -> list[LogEntry]:
        return list(self._state.logs)

    @property
    def memory(self) -> list[MemoryEvent]:
        return list(self._state.memory)

    @property
    def chat_history(self) -> list[ChatMessage]:
        return list(self._state.chat_history)

    @property
    def drift_alert(self) -> DriftAlert | None:
        return self._state.drift_alert

    @property
    def failure(self) -> CycleFailure | None:
        return self._state.failure

    @property
    def thumbnail(self) -> ImageAsset | None:
        return self._thumbnail

    def snapshot(self) -> SessionState:
        with self._lock:
            return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Logging and state patches
    # ------------------------------------------------------------------

    def add_log(self, stage: AgentStage, message: str, *, advance: bool = True) -> None:
        """Append a log entry; unless `advance` is False, also move to `stage`."""
        with self._lock:
            self._state.logs.append(LogEntry(stage=stage, message=message))
            if advance:
                self._state.stage = stage
        logger.info("[%s] %s", stage.value, message)

    def _publish(self, draft: ExperienceData | None) -> None:
        with self._lock:
            self._state.draft = draft

    def _patch_hero(self, url: str | None) -> None:
        with self._lock:
            draft = self._state.draft
            if draft is None:
                return
            content = draft.content.model_copy(update={"hero_image_url": url})
            self._state.draft = draft.model_copy(update={"content": content})

    def _patch_concept(self, index: int, url: str | None) -> None:
        """Replace the image of one product slot, leaving its siblings untouched."""
        with self._lock:
            draft = self._state.draft
            if draft is None or index >= len(draft.content.product_concepts):
                return
            concepts = list(draft.content.product_concepts)
            concepts[index] = concepts[index].model_copy(update={"image_url": url})
            content = draft.content.model_copy(update={"product_concepts": concepts})
            self._state.draft = draft.model_copy(update={"content": content})

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._call_timeout)
        except asyncio.TimeoutError as e:
            raise GenerationError(
                FailureKind.TIMEOUT, f"Generative call exceeded {self._call_timeout}s"
            ) from e

    # ------------------------------------------------------------------
    # Creative cycle
    # ------------------------------------------------------------------

    async def run_cycle(self, is_remix: bool = False) -> AgentStage:
        """Run one cycle. Returns the stage it ends in: COMPLETE or IDLE."""
        remix_event: MemoryEvent | None = None
        if not is_remix:
            with self._lock:
                self._state.logs = []
                self._state.draft = None
                self._state.blueprint = None
                self._state.chat_history = []
                self._state.failure = None
        else:
            remix_event = self.record_interaction("REMIX", "User requested full regeneration/remix")
            with self._lock:
                self._state.stage = AgentStage.DRAFTING
                self._state.failure = None

        try:
            await self._cycle(is_remix)
        except Exception as e:
            failed_at = self.stage
            kind = e.kind if isinstance(e, GenerationError) else FailureKind.TRANSPORT
            logger.exception("Orchestration failed during %s", failed_at.value)
            with self._lock:
                self._state.failure = CycleFailure(kind=kind, stage=failed_at, message=str(e))
            self.add_log(AgentStage.IDLE, "Orchestration failed.")

        if remix_event is not None:
            self._settle(remix_event, "confirmed" if self.stage is AgentStage.COMPLETE else "failed")
        return self.stage

    async def _cycle(self, is_remix: bool) -> None:
        profile = self.profile
        blueprint = self.blueprint
        previous = self.draft

        if not is_remix or blueprint is None or previous is None:
            self.add_log(
                AgentStage.PLANNING,
                f"Analyzing vector: {profile.personality.value} | Pace: {profile.pace}",
            )
            memory = self.memory
            if memory:
                self.add_log(AgentStage.PLANNING, f"Incorporating {len(memory)} historical vectors...")
            blueprint = await self._call(
                agents.create_blueprint(self._service, profile, memory[-HISTORY_WINDOW:])
            )
            with self._lock:
                self._state.blueprint = blueprint
            self.add_log(AgentStage.PLANNING, f"Strategy defined: {blueprint.strategy}")

            self.add_log(
                AgentStage.DRAFTING,
                f"Synthesizing content with metaphor: {blueprint.visual_metaphor}",
            )
            draft = await self._call(agents.generate_draft(self._service, profile, blueprint))
        else:
            self.add_log(AgentStage.DRAFTING, "User requested alternatives. Remixing concepts...")
            draft = await self._call(
                agents.remix_draft(self._service, profile, blueprint, previous)
            )

        self._publish(_without_images(draft))
        await self._generate_assets()
        await self._verify_and_refine(profile)

    async def _generate_assets(self) -> None:
        self.add_log(AgentStage.GENERATING_ASSETS, "Deploying image generation for visuals...")
        draft = self.draft
        design = draft.design

        hero_prompt = draft.content.hero_image_prompt
        if hero_prompt:
            self.add_log(AgentStage.GENERATING_ASSETS, f"Rendering Hero: {hero_prompt[:40]}...")
            hero = await self._call(agents.generate_visual_asset(self._service, hero_prompt, design))
            self._patch_hero(hero.data_url if hero else None)

        async def render_concept(index: int) -> None:
            concept = draft.content.product_concepts[index]
            asset = await self._call(agents.generate_product_asset(
                self._service, concept.concept_name, concept.aesthetic_description, design,
            ))
            self._patch_concept(index, asset.data_url if asset else None)

        await asyncio.gather(
            *(render_concept(i) for i in range(len(draft.content.product_concepts)))
        )
        self.add_log(AgentStage.GENERATING_ASSETS, "Assets generated.")

    async def _verify_and_refine(self, profile: UserProfile) -> None:
        self.add_log(AgentStage.VERIFYING, "Running Vibe Engineering Audit...")
        illustrated = self.draft
        verification = await self._call(agents.verify_draft(self._service, illustrated, profile))
        self._log_flags(verification)

        if verification.aligned:
            self.add_log(
                AgentStage.COMPLETE,
                f"Vibe Alignment confirmed (Score: {verification.score}/100).",
            )
            self._publish(illustrated.model_copy(update={"verification": verification}))
            return

        current = illustrated
        for attempt in range(1, self._refine_passes + 1):
            self.add_log(
                AgentStage.REFINING,
                f"Vibe misalignment ({verification.score}/100). Auto-correcting...",
            )
            refined = await self._call(
                agents.refine_draft(self._service, current, verification, profile)
            )
            current = splice_images(refined, illustrated)
            if not self._reverify or attempt == self._refine_passes:
                break

            self.add_log(AgentStage.VERIFYING, "Re-running Vibe Engineering Audit...")
            verification = await self._call(agents.verify_draft(self._service, current, profile))
            self._log_flags(verification)
            if verification.aligned:
                self.add_log(
                    AgentStage.COMPLETE,
                    f"Refinement verified (Score: {verification.score}/100).",
                )
                self._publish(current.model_copy(update={"verification": verification}))
                return

        self.add_log(AgentStage.COMPLETE, "Refinement applied. Finalizing output.")
        self._publish(current.model_copy(update={"verification": trust_refinement(verification)}))

    def _log_flags(self, verification: VerificationResult) -> None:
        if verification.visual_overload:
            self.add_log(AgentStage.VERIFYING, "Detected: Visual Overload")
        if verification.tone_mismatch:
            self.add_log(AgentStage.VERIFYING, "Detected: Tone Mismatch")
        if verification.pace_friction:
            self.add_log(AgentStage.VERIFYING, "Detected: Pace Friction")

    # ------------------------------------------------------------------
    # Tools (post-completion mutations)
    # ------------------------------------------------------------------

    async def remix(self) -> bool:
        """Regenerate concepts. A no-op unless the cycle is COMPLETE with a draft."""
        if self.stage is not AgentStage.COMPLETE or self.draft is None:
            return False
        await self.run_cycle(is_remix=True)
        return True

    async def chat(self, message: str) -> str | None:
        """Ask the simulated persona about the current page. Returns the reply."""
        draft = self.draft
        if not message.strip() or draft is None:
            return None
        with self._lock:
            self._state.chat_history.append(ChatMessage(role="user", text=message))
        event = self.record_interaction("CHAT", f'User asked persona: "{message}"')

        try:
            reply = await self._call(
                agents.simulate_persona_chat(self._service, self.profile, message, draft)
            )
        except _TOOL_ERRORS as e:
            logger.warning("Persona chat failed: %s", e)
            self._settle(event, "failed")
            return None

        with self._lock:
            self._state.chat_history.append(ChatMessage(role="persona", text=reply))
        self._settle(event, "confirmed")
        return reply

    async def mutate_visual(self, instruction: str) -> bool:
        """Replace the design system according to `instruction`."""
        draft = self.draft
        if draft is None:
            return False
        event = self.record_interaction("VISUAL_EDIT", f"User applied visual mutation: {instruction}")

        try:
            design = await self._call(
                agents.mutate_design(self._service, self.profile, draft.design, instruction)
            )
        except _TOOL_ERRORS as e:
            logger.warning("Visual mutation failed: %s", e)
            self._settle(event, "failed")
            return False

        with self._lock:
            latest = self._state.draft
            if latest is not None:
                self._state.draft = latest.model_copy(update={"design": design})
        self._settle(event, "confirmed")
        self.add_log(AgentStage.REFINING, f"Visual mutation applied: {instruction}", advance=False)
        return True

    async def polish_copy(self, target: CopyTarget, tone: str) -> bool:
        """Rewrite the headline or subheadline in `tone`."""
        if target not in ("headline", "subheadline"):
            raise ValueError(f"Cannot polish {target!r}; expected 'headline' or 'subheadline'")
        draft = self.draft
        if draft is None:
            return False
        event = self.record_interaction("COPY_EDIT", f"User polished copy to tone: {tone}")

        try:
            text = await self._call(
                agents.polish_copy(self._service, getattr(draft.content, target), tone)
            )
        except _TOOL_ERRORS as e:
            logger.warning("Copy polish failed: %s", e)
            self._settle(event, "failed")
            return False

        with self._lock:
            latest = self._state.draft
            if latest is not None:
                content = latest.content.model_copy(update={target: text})
                self._state.draft = latest.model_copy(update={"content": content})
        self._settle(event, "confirmed")
        self.add_log(AgentStage.REFINING, f"Copy polished: {tone}", advance=False)
        return True

    async def edit_image(
        self, target: ImageTarget, instruction: str, index: int | None = None
    ) -> bool:
        """Paint-to-edit the hero image or one product image in place."""
        draft = self.draft
        if draft is None or not instruction.strip():
            return False
        if target == "hero":
            url = draft.content.hero_image_url
        elif target == "product" and index is not None and 0 <= index < len(draft.content.product_concepts):
            url = draft.content.product_concepts[index].image_url
        else:
            return False
        if not url:
            return False

        try:
            edited = await self._call(
                agents.refine_visual_asset(self._service, ImageAsset.from_data_url(url), instruction)
            )
        except (*_TOOL_ERRORS, ValueError) as e:
            logger.warning("Image edit failed: %s", e)
            return False

        if target == "hero":
            self._patch_hero(edited.data_url)
        else:
            self._patch_concept(index, edited.data_url)
        return True

    async def generate_thumbnail(self) -> ImageAsset | None:
        """Render the shareable project thumbnail. Leaves the stage alone."""
        self.add_log(
            AgentStage.GENERATING_ASSETS, "Generating Press Kit / Project Thumbnail...", advance=False
        )
        try:
            asset = await self._call(agents.generate_project_thumbnail(self._service))
        except _TOOL_ERRORS as e:
            logger.warning("Thumbnail generation failed: %s", e)
            asset = None

        if asset is None:
            return None
        self._thumbnail = asset
        with self._lock:
            self._state.has_thumbnail = True
        self.add_log(AgentStage.GENERATING_ASSETS, "Press Kit Asset Generated.", advance=False)
        return asset

    # ------------------------------------------------------------------
    # Memory & drift
    # ------------------------------------------------------------------

    def record_interaction(self, type: InteractionType, detail: str) -> MemoryEvent:
        """Append a pending memory event, persist, and schedule a drift check when due.

        Must be called from inside a running event loop.
        """
        event = new_event(type, detail, self.stage)
        with self._lock:
            self._state.memory.append(event)
            memory = list(self._state.memory)
        self._store.save(self._user_name, memory)

        if drift_due(len(memory)):
            task = asyncio.create_task(self.check_drift(memory))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return event

    def _settle(self, event: MemoryEvent, status: EventStatus) -> None:
        with self._lock:
            for i, e in enumerate(self._state.memory):
                if e.id == event.id:
                    self._state.memory[i] = e.model_copy(update={"status": status})
                    break
            else:
                return
            memory = list(self._state.memory)
        self._store.save(self._user_name, memory)

    async def check_drift(self, history: list[MemoryEvent]) -> PreferenceDrift | None:
        """Compare recent behaviour with the profile and apply any drift patch."""
        self.add_log(self.stage, "Analyzing long-horizon preference drift...", advance=False)
        try:
            drift = await self._call(
                agents.detect_preference_drift(self._service, self.profile, history)
            )
        except _TOOL_ERRORS as e:
            logger.warning("Drift check failed: %s", e)
            return None

        with self._lock:
            updated = apply_drift(self._state.profile, drift)
            if updated is not None:
                self._state.profile = updated
                self._state.drift_alert = DriftAlert(
                    message=drift.reasoning, pattern=drift.detected_pattern
                )
        if updated is not None:
            self.add_log(
                AgentStage.DRIFT_DETECTED,
                f"Preference Drift: {drift.detected_pattern}",
                advance=False,
            )
        return drift

    async def drain(self) -> None:
        """Wait for background drift checks to finish."""
        while self._background:
            await asyncio.gather(*list(self._background))

    def dismiss_drift_alert(self) -> None:
        with self._lock:
            self._state.drift_alert = None

    def clear_memory(self) -> None:
        with self._lock:
            self._state.memory = []
        self._store.clear(self._user_name)
        self.add_log(AgentStage.IDLE, "Memory Core wiped.", advance=False)
