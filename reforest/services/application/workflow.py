"""
Application service: upload-to-results workflow.

The workflow is an explicit state machine. ``transition(state, event)`` is a
pure reducer returning the next state plus the effect to perform next;
``WorkflowOrchestrator`` performs effects against the collaborators and
feeds their outcomes back in as events.

Stages::

    upload -> validating -> (awaiting-location) -> processing -> analyzing -> results

``error`` is reachable from any stage for non-recoverable failures and
``reset`` returns to ``upload`` from anywhere.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union
import asyncio
import logging
import uuid

from pydantic import BaseModel, Field

from reforest.config import Settings
from reforest.domain.errors import (
    ErrorKind,
    ReforestError,
    SuggestedAction,
    ValidationError,
)
from reforest.domain.models import (
    ClimateProfile,
    Context,
    Location,
    LocationFix,
    LocationSource,
    RecommendationBundle,
    SiteAnalysis,
    SuitabilityAssessment,
)
from reforest.infrastructure.climate_client import ClimateClient
from reforest.infrastructure.geocoding_client import GeocodingClient, validate_coordinates
from reforest.infrastructure.image_analysis import ImageAnalyzer, UploadedImage
from reforest.services.application.recommendation_service import RecommendationService
from reforest.services.domain.climate_analysis import assess_suitability, summarize

logger = logging.getLogger(__name__)


class WorkflowStage(str, Enum):
    UPLOAD = "upload"
    VALIDATING = "validating"
    AWAITING_LOCATION = "awaiting-location"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    RESULTS = "results"
    ERROR = "error"


STAGE_PROGRESS: Dict[WorkflowStage, int] = {
    WorkflowStage.UPLOAD: 0,
    WorkflowStage.VALIDATING: 10,
    WorkflowStage.AWAITING_LOCATION: 30,
    WorkflowStage.PROCESSING: 40,
    WorkflowStage.ANALYZING: 60,
    WorkflowStage.RESULTS: 100,
    WorkflowStage.ERROR: 0,
}


class Effect(str, Enum):
    """Work the orchestrator performs after a transition."""
    VALIDATE = "validate"
    EXTRACT = "extract"
    LOCATE_AND_CLASSIFY = "locate-and-classify"
    ANALYZE_CLIMATE = "analyze-climate"
    RECOMMEND = "recommend"


class WorkflowError(BaseModel):
    """Serializable view of the failure that interrupted a run."""
    kind: Optional[ErrorKind] = None
    message: str
    suggested_action: SuggestedAction = SuggestedAction.NONE
    recoverable: bool = True
    service: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: Exception) -> "WorkflowError":
        if isinstance(exc, ReforestError):
            return cls(
                kind=exc.kind,
                message=exc.message,
                suggested_action=exc.suggested_action,
                recoverable=exc.recoverable,
                service=getattr(exc, "service", None),
            )
        return cls(
            message=f"Unexpected error: {exc}",
            recoverable=False,
        )


class WorkflowState(BaseModel):
    """Everything gathered so far for one workflow. Replaced, never mutated."""
    workflow_id: str
    stage: WorkflowStage = WorkflowStage.UPLOAD
    image_name: Optional[str] = None
    validated: bool = False
    preview: Optional[str] = Field(default=None, description="Thumbnail data URL")
    location_fix: Optional[LocationFix] = None
    location: Optional[Location] = None
    site: Optional[SiteAnalysis] = None
    climate: Optional[ClimateProfile] = None
    suitability: Optional[SuitabilityAssessment] = None
    bundle: Optional[RecommendationBundle] = None
    error: Optional[WorkflowError] = None
    use_reasoning: bool = True
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def progress(self) -> int:
        value = STAGE_PROGRESS[self.stage]
        if self.stage is WorkflowStage.VALIDATING and self.validated:
            value += 10
        elif self.stage is WorkflowStage.ANALYZING and self.climate is not None:
            value += 20
        return value

    @property
    def is_complete(self) -> bool:
        """A results view is only shown for a complete bundle."""
        return self.stage is WorkflowStage.RESULTS and self.bundle is not None


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class ImageSelected:
    image_name: str


@dataclass(frozen=True)
class ImageValidated:
    pass


@dataclass(frozen=True)
class LocationExtracted:
    fix: LocationFix
    preview: Optional[str]


@dataclass(frozen=True)
class LocationSupplied:
    fix: LocationFix


@dataclass(frozen=True)
class PlaceAndSiteResolved:
    location: Location
    site: SiteAnalysis


@dataclass(frozen=True)
class ClimateAnalyzed:
    climate: ClimateProfile
    suitability: SuitabilityAssessment


@dataclass(frozen=True)
class RecommendationsReady:
    bundle: RecommendationBundle


@dataclass(frozen=True)
class RecalculateRequested:
    use_reasoning: bool


@dataclass(frozen=True)
class StageFailed:
    error: WorkflowError


@dataclass(frozen=True)
class ResetRequested:
    pass


Event = Union[
    ImageSelected,
    ImageValidated,
    LocationExtracted,
    LocationSupplied,
    PlaceAndSiteResolved,
    ClimateAnalyzed,
    RecommendationsReady,
    RecalculateRequested,
    StageFailed,
    ResetRequested,
]


# ============================================================
# Reducer
# ============================================================

def _expect(state: WorkflowState, action: str, *stages: WorkflowStage) -> None:
    if state.stage not in stages:
        raise ValidationError(
            f"Cannot {action} while workflow is in stage '{state.stage.value}'",
            suggested_action=SuggestedAction.NONE,
            status_code=409,
        )


def _update(state: WorkflowState, **changes) -> WorkflowState:
    changes.setdefault("updated_at", datetime.now(timezone.utc))
    return state.model_copy(update=changes)


def recovery_stage(state: WorkflowState, error: WorkflowError) -> WorkflowStage:
    """Stable stage to return to after a failure, decided from the error tag."""
    if not error.recoverable:
        return WorkflowStage.ERROR
    if error.suggested_action is SuggestedAction.SUPPLY_LOCATION:
        return WorkflowStage.AWAITING_LOCATION
    if error.kind is ErrorKind.VALIDATION:
        return WorkflowStage.UPLOAD
    fix = state.location_fix
    if fix is not None and fix.approximate:
        return WorkflowStage.AWAITING_LOCATION
    return WorkflowStage.UPLOAD


def initial_state(workflow_id: Optional[str] = None, use_reasoning: bool = True) -> WorkflowState:
    return WorkflowState(
        workflow_id=workflow_id or uuid.uuid4().hex,
        use_reasoning=use_reasoning,
    )


def transition(state: WorkflowState, event: Event) -> Tuple[WorkflowState, Optional[Effect]]:
    """
    Compute the next state and the effect to run for an event.

    Raises:
        ValidationError: With status 409 if the event is not valid in the
            current stage
    """
    if isinstance(event, ResetRequested):
        return initial_state(state.workflow_id, state.use_reasoning), None

    if isinstance(event, ImageSelected):
        _expect(
            state, "select an image",
            WorkflowStage.UPLOAD,
            WorkflowStage.AWAITING_LOCATION,
            WorkflowStage.RESULTS,
            WorkflowStage.ERROR,
        )
        fresh = initial_state(state.workflow_id, state.use_reasoning)
        return _update(fresh, stage=WorkflowStage.VALIDATING, image_name=event.image_name), Effect.VALIDATE

    if isinstance(event, ImageValidated):
        _expect(state, "mark the image validated", WorkflowStage.VALIDATING)
        return _update(state, validated=True), Effect.EXTRACT

    if isinstance(event, LocationExtracted):
        _expect(state, "record GPS extraction", WorkflowStage.VALIDATING)
        if not event.fix.has_coordinates:
            # The one suspension point: nothing runs until a location is supplied
            return _update(
                state,
                stage=WorkflowStage.AWAITING_LOCATION,
                location_fix=event.fix,
                preview=event.preview,
            ), None
        return _update(
            state,
            stage=WorkflowStage.PROCESSING,
            location_fix=event.fix,
            preview=event.preview,
        ), Effect.LOCATE_AND_CLASSIFY

    if isinstance(event, LocationSupplied):
        _expect(state, "supply a location", WorkflowStage.AWAITING_LOCATION)
        return _update(
            state,
            stage=WorkflowStage.PROCESSING,
            location_fix=event.fix,
            error=None,
        ), Effect.LOCATE_AND_CLASSIFY

    if isinstance(event, PlaceAndSiteResolved):
        _expect(state, "record place and site analysis", WorkflowStage.PROCESSING)
        return _update(
            state,
            stage=WorkflowStage.ANALYZING,
            location=event.location,
            site=event.site,
        ), Effect.ANALYZE_CLIMATE

    if isinstance(event, ClimateAnalyzed):
        _expect(state, "record climate analysis", WorkflowStage.ANALYZING)
        return _update(state, climate=event.climate, suitability=event.suitability), Effect.RECOMMEND

    if isinstance(event, RecommendationsReady):
        _expect(state, "record recommendations", WorkflowStage.ANALYZING)
        return _update(state, stage=WorkflowStage.RESULTS, bundle=event.bundle, error=None), None

    if isinstance(event, RecalculateRequested):
        _expect(state, "recalculate", WorkflowStage.RESULTS)
        return _update(
            state,
            stage=WorkflowStage.ANALYZING,
            bundle=None,
            use_reasoning=event.use_reasoning,
        ), Effect.RECOMMEND

    if isinstance(event, StageFailed):
        stage = recovery_stage(state, event.error)
        # Partial results are never kept across a failure
        changes = dict(
            stage=stage,
            error=event.error,
            location=None,
            site=None,
            climate=None,
            suitability=None,
            bundle=None,
        )
        if stage is WorkflowStage.UPLOAD:
            changes["validated"] = False
            changes["location_fix"] = None
            if event.error.kind is ErrorKind.VALIDATION:
                changes["image_name"] = None
                changes["preview"] = None
        return _update(state, **changes), None

    raise TypeError(f"Unknown workflow event: {event!r}")


# ============================================================
# Orchestrator
# ============================================================

class CancellationToken:
    """Cooperative cancellation flag checked before every state commit."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


@dataclass(frozen=True)
class WorkflowConfig:
    default_latitude: float = -1.2921
    default_longitude: float = 36.8219
    use_reasoning: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkflowConfig":
        return cls(
            default_latitude=settings.default_latitude,
            default_longitude=settings.default_longitude,
            use_reasoning=settings.reasoning_enabled,
        )


Listener = Callable[[WorkflowState], None]


class WorkflowOrchestrator:
    """
    Drives one workflow from image selection to a complete result bundle.

    Only one run per instance may be active at a time. Results that arrive
    after ``reset`` or ``close`` are discarded.
    """

    def __init__(
        self,
        images: ImageAnalyzer,
        geocoder: GeocodingClient,
        climate: ClimateClient,
        recommender: RecommendationService,
        config: Optional[WorkflowConfig] = None,
        workflow_id: Optional[str] = None,
    ):
        self.images = images
        self.geocoder = geocoder
        self.climate = climate
        self.recommender = recommender
        self.config = config or WorkflowConfig()
        self._state = initial_state(workflow_id, self.config.use_reasoning)
        self._image: Optional[UploadedImage] = None
        self._token = CancellationToken()
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def id(self) -> str:
        return self._state.workflow_id

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> dict:
        data = self._state.model_dump(mode="json")
        data["progress"] = self._state.progress
        data["is_complete"] = self._state.is_complete
        return data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with every committed state."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------

    async def select_image(self, image: UploadedImage) -> WorkflowState:
        """Start a run for a newly selected image."""
        self._ensure_open()
        token = self._token
        effect = self._commit(ImageSelected(image_name=image.filename), token)
        self._image = image
        await self._run(effect, token)
        return self._state

    async def supply_location(
        self,
        latitude: float,
        longitude: float,
        source: LocationSource = LocationSource.MANUAL,
    ) -> WorkflowState:
        """
        Resume a run suspended in ``awaiting-location``.

        The held image and preview are reused; validation and GPS
        extraction are not repeated.
        """
        self._ensure_open()
        token = self._token
        _expect(self._state, "supply a location", WorkflowStage.AWAITING_LOCATION)
        try:
            validate_coordinates(latitude, longitude)
        except ValidationError as e:
            self._commit(StageFailed(WorkflowError.from_exception(e)), token)
            return self._state

        fix = LocationFix(
            latitude=float(latitude),
            longitude=float(longitude),
            has_coordinates=True,
            source=source,
        )
        effect = self._commit(LocationSupplied(fix=fix), token)
        await self._run(effect, token)
        return self._state

    async def use_default_location(self) -> WorkflowState:
        """Resume with the configured fallback location."""
        return await self.supply_location(
            self.config.default_latitude,
            self.config.default_longitude,
            source=LocationSource.FALLBACK,
        )

    async def retry(self) -> WorkflowState:
        """Re-run from the stable stage the last failure returned to."""
        self._ensure_open()
        state = self._state
        if state.error is not None and state.error.recoverable:
            fix = state.location_fix
            if state.stage is WorkflowStage.AWAITING_LOCATION and fix and fix.has_coordinates:
                return await self.supply_location(fix.latitude, fix.longitude, source=fix.source)
            if state.stage is WorkflowStage.UPLOAD and self._image is not None:
                return await self.select_image(self._image)
        raise ValidationError(
            "Nothing to retry in the current workflow stage",
            suggested_action=SuggestedAction.NONE,
            status_code=409,
        )

    async def recalculate(self, use_reasoning: Optional[bool] = None) -> WorkflowState:
        """Re-run the recommendation stage from the context already held."""
        self._ensure_open()
        token = self._token
        if use_reasoning is None:
            use_reasoning = self._state.use_reasoning
        effect = self._commit(RecalculateRequested(use_reasoning=use_reasoning), token)
        await self._run(effect, token)
        return self._state

    def reset(self) -> WorkflowState:
        """Abandon any in-flight run and return to ``upload``."""
        self._ensure_open()
        self._token.cancel()
        self._token = CancellationToken()
        self._image = None
        self._commit(ResetRequested(), self._token)
        return self._state

    def close(self) -> None:
        """Tear down: late results from in-flight calls are discarded."""
        if self._closed:
            return
        self._token.cancel()
        self._closed = True
        self._image = None
        self._listeners.clear()
        logger.info(f"Workflow {self.id} closed")

    # ------------------------------------------------------------
    # Effect execution
    # ------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Workflow {self.id} has been closed")

    def _commit(self, event: Event, token: CancellationToken) -> Optional[Effect]:
        if token.cancelled:
            logger.warning(
                f"Workflow {self.id}: discarding {type(event).__name__} from a cancelled run"
            )
            return None

        previous = self._state.stage
        self._state, effect = transition(self._state, event)
        if self._state.image_name is None:
            self._image = None
        if self._state.stage is not previous:
            logger.info(
                f"Workflow {self.id}: {previous.value} -> {self._state.stage.value} "
                f"({type(event).__name__})"
            )
        for listener in list(self._listeners):
            listener(self._state)
        return effect

    async def _run(self, effect: Optional[Effect], token: CancellationToken) -> None:
        while effect is not None:
            try:
                event = await self._perform(effect)
            except ReforestError as e:
                logger.error(f"Workflow {self.id}: {effect.value} failed: {e.message}")
                event = StageFailed(WorkflowError.from_exception(e))
            except Exception as e:
                logger.exception(f"Workflow {self.id}: unexpected failure during {effect.value}")
                event = StageFailed(WorkflowError.from_exception(e))
            effect = self._commit(event, token)

    async def _perform(self, effect: Effect) -> Event:
        if effect is Effect.VALIDATE:
            self.images.validate(self._require_image())
            return ImageValidated()

        if effect is Effect.EXTRACT:
            return await self._extract()

        if effect is Effect.LOCATE_AND_CLASSIFY:
            return await self._locate_and_classify()

        if effect is Effect.ANALYZE_CLIMATE:
            return await self._analyze_climate()

        if effect is Effect.RECOMMEND:
            return await self._recommend()

        raise ValueError(f"Unknown effect: {effect}")

    async def _extract(self) -> LocationExtracted:
        image = self._require_image()
        fix, preview = await asyncio.gather(
            self.images.extract_location(image),
            self.images.create_preview(image),
        )
        return LocationExtracted(fix=fix, preview=preview)

    async def _locate_and_classify(self) -> PlaceAndSiteResolved:
        image = self._require_image()
        coordinates = self._state.location_fix.coordinates
        # Both branches finish before either outcome is looked at
        place, site = await asyncio.gather(
            self.geocoder.resolve_place(coordinates.latitude, coordinates.longitude),
            self.images.classify_site(image),
            return_exceptions=True,
        )
        for outcome in (place, site):
            if isinstance(outcome, BaseException):
                raise outcome
        return PlaceAndSiteResolved(
            location=Location.from_place(coordinates, place),
            site=site,
        )

    async def _analyze_climate(self) -> ClimateAnalyzed:
        coordinates = self._state.location.coordinates
        raw = await self.climate.fetch_profile_or_synthetic(
            coordinates.latitude, coordinates.longitude
        )
        climate = summarize(raw)
        return ClimateAnalyzed(
            climate=climate,
            suitability=assess_suitability(climate, self._state.site),
        )

    async def _recommend(self) -> RecommendationsReady:
        state = self._state
        fix = state.location_fix
        context = Context(
            location=state.location,
            climate=state.climate,
            site=state.site,
            approximate_location=fix.approximate,
        )
        bundle = await self.recommender.recommend(
            context,
            use_reasoning=state.use_reasoning,
            location_source=fix.source,
        )
        return RecommendationsReady(bundle=bundle)

    def _require_image(self) -> UploadedImage:
        if self._image is None:
            raise ValidationError("No image selected")
        return self._image


class WorkflowRegistry:
    """In-memory registry of live workflows keyed by id."""

    def __init__(self, factory: Callable[[], WorkflowOrchestrator]):
        self._factory = factory
        self._workflows: Dict[str, WorkflowOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._workflows)

    def create(self) -> WorkflowOrchestrator:
        workflow = self._factory()
        self._workflows[workflow.id] = workflow
        logger.info(f"Created workflow {workflow.id}")
        return workflow

    def get(self, workflow_id: str) -> Optional[WorkflowOrchestrator]:
        return self._workflows.get(workflow_id)

    def remove(self, workflow_id: str) -> bool:
        workflow = self._workflows.pop(workflow_id, None)
        if workflow is None:
            return False
        workflow.close()
        return True

    def close_all(self) -> None:
        for workflow_id in list(self._workflows):
            self.remove(workflow_id)
