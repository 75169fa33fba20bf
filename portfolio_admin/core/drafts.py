"""
Entity Drafts
=============

Editable, not-yet-persisted representations of the content managed by the
admin console. Each entity kind is a dataclass variant of ``EntityDraft``
that declares:

- its wizard steps and the fields each step requires,
- how to pre-fill itself from a stored entity (edit mode),
- how to serialise itself into the Content API payload.

Variants register themselves by kind with ``register_draft``, so the wizard
and the dashboard never need per-kind branches.

Author: Portfolio Admin Project
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from portfolio_admin.core import config
from portfolio_admin.core.slugs import SlugBinding
from portfolio_admin.core.uploads import MediaFile, UploadedMedia
from portfolio_admin.integrations.media_host_client import media_id_from_url


# ============================================================================
# HELPERS
# ============================================================================

def is_blank(value: Any) -> bool:
    """True for None, empty or whitespace-only strings, and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def parse_list_field(value: Any) -> List[str]:
    """Accept a comma-separated string or a list and return trimmed, non-empty items."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(item).strip() for item in items if str(item).strip()]


def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def integer_error(value: Any, label: str) -> Optional[str]:
    """Message for a filled-in value that is not a whole number, else None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        int(value)
    except (TypeError, ValueError):
        return f"{label} must be a number"
    return None


def _as_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    value = _clean(value)
    if value is None or value == "":
        return default
    return int(value)


def _stored_image(image: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a stored image, recovering ``publicId`` from its URL when it is missing."""
    image = dict(image)
    if not image.get("publicId"):
        media_id = media_id_from_url(image.get("url") or "")
        if media_id:
            image["publicId"] = media_id
    return image


def _date_only(value: Any) -> str:
    # Stored dates come back as full ISO timestamps; editors work on YYYY-MM-DD
    if not value:
        return ""
    return str(value)[:10]


@dataclass(frozen=True)
class WizardStep:
    """One stage of an editor: its title and the fields it requires."""
    title: str
    required: Tuple[str, ...] = ()


# ============================================================================
# REGISTRY
# ============================================================================

DRAFT_KINDS: Dict[str, Type["EntityDraft"]] = {}


def register_draft(cls):
    """Class decorator registering a draft variant under its ``KIND``."""
    DRAFT_KINDS[cls.KIND] = cls
    return cls


def draft_class_for(kind: str) -> Type["EntityDraft"]:
    try:
        return DRAFT_KINDS[kind]
    except KeyError:
        raise ValueError(f"No editor registered for entity kind '{kind}'") from None


def new_draft(kind: str, entity: Optional[Dict[str, Any]] = None) -> "EntityDraft":
    """Create an empty draft of ``kind``, or one pre-filled from ``entity``."""
    cls = draft_class_for(kind)
    return cls.from_entity(entity) if entity else cls()


# ============================================================================
# BASE DRAFT
# ============================================================================

@dataclass
class EntityDraft:
    """
    Base class for all draft variants.

    Attributes:
        entity_id: Id of the stored entity being edited; None for new entities.
        pending_media: Files selected in the editor but not uploaded yet.
    """
    KIND: ClassVar[str] = ""
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (WizardStep("Details"),)
    FIELD_LABELS: ClassVar[Dict[str, str]] = {}
    UPLOAD_FOLDER: ClassVar[str] = config.DEFAULT_UPLOAD_FOLDER

    entity_id: Optional[str] = None
    pending_media: List[MediaFile] = field(default_factory=list, repr=False)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def is_edit(self) -> bool:
        return self.entity_id is not None

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "EntityDraft":
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def field_names(self) -> List[str]:
        return [f.name for f in fields(self) if f.init and f.name not in ("entity_id", "pending_media")]

    def set_field(self, name: str, value: Any) -> None:
        """Assign an editable field. Unknown names raise ``AttributeError``."""
        if name not in self.field_names():
            raise AttributeError(f"{type(self).__name__} has no editable field '{name}'")
        setattr(self, name, value)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_step(self, step: int) -> Dict[str, str]:
        """
        Validate the fields owned by ``step`` (1-based).

        Returns:
            Mapping of field name to error message; empty when the step passes.
        """
        errors: Dict[str, str] = {}
        if step < 1 or step > len(self.STEPS):
            return errors
        for name in self.STEPS[step - 1].required:
            if is_blank(getattr(self, name)):
                label = self.FIELD_LABELS.get(name, name.replace("_", " ").capitalize())
                errors[name] = f"{label} is required"
        errors.update(self._extra_step_errors(step, errors))
        return errors

    def validate_all(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for step in range(1, len(self.STEPS) + 1):
            errors.update(self.validate_step(step))
        return errors

    def _extra_step_errors(self, step: int, errors: Dict[str, str]) -> Dict[str, str]:
        """Hook for variant-specific rules beyond required fields."""
        return {}

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    def attach_media(self, uploaded: List[UploadedMedia]) -> None:
        """Record uploaded media on the draft. Kinds without media ignore it."""
        self.pending_media = []


class SluggedDraftMixin:
    """Keeps a draft's ``slug`` bound to its ``title`` via ``SlugBinding``."""

    def _init_slug_binding(self):
        self._slug_binding = SlugBinding(self.title, self.slug)
        self.slug = self._slug_binding.value

    @property
    def slug_manually_edited(self) -> bool:
        return self._slug_binding.manually_edited

    def set_field(self, name: str, value: Any) -> None:
        if name == "title":
            super().set_field(name, value)
            self.slug = self._slug_binding.title_changed(value or "")
        elif name == "slug":
            super().set_field(name, self._slug_binding.slug_edited(value or ""))
        else:
            super().set_field(name, value)

    def resolved_slug(self) -> str:
        return self._slug_binding.resolve(self.title)


# ============================================================================
# PROJECT
# ============================================================================

def _empty_technologies() -> Dict[str, List[str]]:
    return {group: [] for group in config.TECHNOLOGY_GROUPS}


def _empty_links() -> Dict[str, str]:
    return {key: "" for key in config.PROJECT_LINK_KEYS}


def _empty_seo() -> Dict[str, Any]:
    return {"metaTitle": "", "metaDescription": "", "keywords": [], "ogImage": ""}


@register_draft
@dataclass
class ProjectDraft(SluggedDraftMixin, EntityDraft):
    """Four-step project editor: basics, technologies, media, settings."""
    KIND: ClassVar[str] = config.KIND_PROJECT
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (
        WizardStep("Basic Info", ("title", "short_description", "long_description", "category", "project_type")),
        WizardStep("Technologies"),
        WizardStep("Media"),
        WizardStep("Settings"),
    )
    FIELD_LABELS: ClassVar[Dict[str, str]] = {
        "title": "Project title",
        "short_description": "Short description",
        "long_description": "Long description",
        "category": "Category",
        "project_type": "Project type",
    }
    UPLOAD_FOLDER: ClassVar[str] = config.PROJECT_UPLOAD_FOLDER

    title: str = ""
    slug: str = ""
    short_description: str = ""
    long_description: str = ""
    category: str = "Portfolio"
    project_type: str = "Full Stack"
    featured: bool = False
    status: str = "completed"
    priority: int = 0
    tags: List[str] = field(default_factory=list)
    technologies: Dict[str, List[str]] = field(default_factory=_empty_technologies)
    links: Dict[str, str] = field(default_factory=_empty_links)
    features: List[str] = field(default_factory=list)
    learnings: List[str] = field(default_factory=list)
    duration: str = ""
    seo: Dict[str, Any] = field(default_factory=_empty_seo)
    images: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        self._init_slug_binding()

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "ProjectDraft":
        technologies = _empty_technologies()
        technologies.update({k: list(v or []) for k, v in (entity.get("technologies") or {}).items()})
        links = _empty_links()
        links.update({k: v or "" for k, v in (entity.get("links") or {}).items()})
        seo = _empty_seo()
        seo.update(entity.get("seo") or {})
        return cls(
            entity_id=entity.get("_id", entity.get("id")),
            title=entity.get("title") or "",
            slug=entity.get("slug") or "",
            short_description=entity.get("shortDescription") or "",
            long_description=entity.get("longDescription") or "",
            category=entity.get("category") or "Portfolio",
            project_type=entity.get("projectType") or "Full Stack",
            featured=bool(entity.get("featured", False)),
            status=entity.get("status") or "completed",
            priority=entity.get("priority") or 0,
            tags=list(entity.get("tags") or []),
            technologies=technologies,
            links=links,
            features=list(entity.get("features") or []),
            learnings=list(entity.get("learnings") or []),
            duration=entity.get("duration") or "",
            seo=seo,
            images=[_stored_image(image) for image in entity.get("images") or []],
        )

    def _extra_step_errors(self, step, errors):
        extra = {}
        if step == 1:
            if self.category and "category" not in errors and self.category not in config.PROJECT_CATEGORIES:
                extra["category"] = f"Category must be one of: {', '.join(config.PROJECT_CATEGORIES)}"
            if self.project_type and "project_type" not in errors and self.project_type not in config.PROJECT_TYPES:
                extra["project_type"] = f"Project type must be one of: {', '.join(config.PROJECT_TYPES)}"
        if step == 4:
            message = integer_error(self.priority, "Priority")
            if message:
                extra["priority"] = message
        return extra

    def set_cover_image(self, index: int) -> None:
        """Mark image ``index`` as the cover; every other image becomes a screenshot."""
        if index < 0 or index >= len(self.images):
            raise IndexError(f"No image at position {index}")
        for i, image in enumerate(self.images):
            image["type"] = "cover" if i == index else "screenshot"

    def remove_image(self, index: int) -> None:
        del self.images[index]

    def attach_media(self, uploaded: List[UploadedMedia]) -> None:
        has_cover = any(image.get("type") == "cover" for image in self.images)
        for media in uploaded:
            self.images.append({
                "url": media.url,
                "publicId": media.media_id,
                "caption": "",
                "type": "screenshot" if has_cover else "cover",
            })
            has_cover = True
        self.pending_media = []

    def to_payload(self) -> Dict[str, Any]:
        return {
            "title": _clean(self.title),
            "slug": self.resolved_slug(),
            "shortDescription": _clean(self.short_description),
            "longDescription": _clean(self.long_description),
            "category": self.category,
            "projectType": self.project_type,
            "featured": bool(self.featured),
            "status": self.status,
            "priority": _as_int(self.priority),
            "tags": parse_list_field(self.tags),
            "technologies": {k: parse_list_field(v) for k, v in self.technologies.items()},
            "links": {k: _clean(v) for k, v in self.links.items()},
            "features": parse_list_field(self.features),
            "learnings": parse_list_field(self.learnings),
            "duration": _clean(self.duration),
            "seo": {
                "metaTitle": _clean(self.seo.get("metaTitle", "")),
                "metaDescription": _clean(self.seo.get("metaDescription", "")),
                "keywords": parse_list_field(self.seo.get("keywords")),
                "ogImage": _clean(self.seo.get("ogImage", "")),
            },
            "images": [dict(image) for image in self.images],
        }


# ============================================================================
# BLOG
# ============================================================================

@register_draft
@dataclass
class BlogDraft(SluggedDraftMixin, EntityDraft):
    """Two-step blog editor: content, then publishing and SEO."""
    KIND: ClassVar[str] = config.KIND_BLOG
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (
        WizardStep("Content", ("title", "excerpt", "content", "category")),
        WizardStep("Publishing & SEO"),
    )
    FIELD_LABELS: ClassVar[Dict[str, str]] = {
        "title": "Title",
        "excerpt": "Excerpt",
        "content": "Content",
        "category": "Category",
    }
    UPLOAD_FOLDER: ClassVar[str] = config.BLOG_UPLOAD_FOLDER

    title: str = ""
    slug: str = ""
    excerpt: str = ""
    content: str = ""
    category: str = "Tutorial"
    tags: List[str] = field(default_factory=list)
    featured: bool = False
    published: bool = True
    published_at: Optional[str] = None
    seo_title: str = ""
    seo_description: str = ""
    seo_keywords: List[str] = field(default_factory=list)
    cover_image: Optional[Dict[str, str]] = None

    def __post_init__(self):
        self._init_slug_binding()

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "BlogDraft":
        seo = entity.get("seo") or {}
        cover = entity.get("coverImage")
        return cls(
            entity_id=entity.get("_id", entity.get("id")),
            title=entity.get("title") or "",
            slug=entity.get("slug") or "",
            excerpt=entity.get("excerpt") or "",
            content=entity.get("content") or "",
            category=entity.get("category") or "Tutorial",
            tags=list(entity.get("tags") or []),
            featured=bool(entity.get("featured", False)),
            published=bool(entity.get("published", False)),
            published_at=entity.get("publishedAt"),
            seo_title=seo.get("metaTitle") or "",
            seo_description=seo.get("metaDescription") or "",
            seo_keywords=list(seo.get("keywords") or []),
            cover_image=_stored_image(cover) if cover else None,
        )

    def _extra_step_errors(self, step, errors):
        extra = {}
        if step == 1:
            if len(_clean(self.excerpt) or "") > config.BLOG_EXCERPT_MAX_LENGTH:
                extra["excerpt"] = f"Excerpt cannot exceed {config.BLOG_EXCERPT_MAX_LENGTH} characters"
            if self.category and "category" not in errors and self.category not in config.BLOG_CATEGORIES:
                extra["category"] = f"Category must be one of: {', '.join(config.BLOG_CATEGORIES)}"
        return extra

    def attach_media(self, uploaded: List[UploadedMedia]) -> None:
        if uploaded:
            self.cover_image = {"url": uploaded[0].url, "publicId": uploaded[0].media_id}
        self.pending_media = []

    def to_payload(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        payload = {
            "title": _clean(self.title),
            "slug": self.resolved_slug(),
            "excerpt": _clean(self.excerpt),
            "content": _clean(self.content),
            "category": self.category,
            "tags": parse_list_field(self.tags),
            "featured": bool(self.featured),
            "published": bool(self.published),
        }

        if self.published:
            if self.published_at:
                payload["publishedAt"] = self.published_at
            else:
                payload["publishedAt"] = (now or datetime.now(timezone.utc)).isoformat()

        seo = {}
        if _clean(self.seo_title):
            seo["metaTitle"] = _clean(self.seo_title)
        if _clean(self.seo_description):
            seo["metaDescription"] = _clean(self.seo_description)
        keywords = parse_list_field(self.seo_keywords)
        if keywords:
            seo["keywords"] = keywords
        if seo:
            payload["seo"] = seo

        if self.cover_image:
            payload["coverImage"] = dict(self.cover_image)
        return payload


# ============================================================================
# EXPERIENCE
# ============================================================================

@register_draft
@dataclass
class ExperienceDraft(EntityDraft):
    """Two-step experience editor: role, then details."""
    KIND: ClassVar[str] = config.KIND_EXPERIENCE
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (
        WizardStep("Role", ("position", "company", "start_date", "description")),
        WizardStep("Details"),
    )
    FIELD_LABELS: ClassVar[Dict[str, str]] = {
        "position": "Position",
        "company": "Company",
        "start_date": "Start date",
        "description": "Description",
    }

    position: str = ""
    company: str = ""
    location: str = ""
    type: str = "Full-time"
    start_date: str = ""
    end_date: str = ""
    current: bool = False
    description: str = ""
    responsibilities: List[str] = field(default_factory=list)
    achievements: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    website: str = ""
    order: Any = ""

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "ExperienceDraft":
        order = entity.get("order")
        return cls(
            entity_id=entity.get("_id", entity.get("id")),
            position=entity.get("position") or "",
            company=entity.get("company") or "",
            location=entity.get("location") or "",
            type=entity.get("type") or "Full-time",
            start_date=_date_only(entity.get("startDate")),
            end_date=_date_only(entity.get("endDate")),
            current=bool(entity.get("current", False)),
            description=entity.get("description") or "",
            responsibilities=list(entity.get("responsibilities") or []),
            achievements=list(entity.get("achievements") or []),
            technologies=list(entity.get("technologies") or []),
            website=entity.get("website") or "",
            order="" if order is None else order,
        )

    def _extra_step_errors(self, step, errors):
        extra = {}
        if step == 1 and self.type not in config.EXPERIENCE_TYPES:
            extra["type"] = f"Type must be one of: {', '.join(config.EXPERIENCE_TYPES)}"
        if step == 2:
            message = integer_error(self.order, "Order")
            if message:
                extra["order"] = message
        return extra

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "position": _clean(self.position),
            "company": _clean(self.company),
            "location": _clean(self.location),
            "type": self.type,
            "startDate": self.start_date,
            "endDate": None if self.current else (self.end_date or None),
            "current": bool(self.current),
            "description": _clean(self.description),
            "responsibilities": parse_list_field(self.responsibilities),
            "achievements": parse_list_field(self.achievements),
            "technologies": parse_list_field(self.technologies),
            "website": _clean(self.website),
        }
        order = _as_int(self.order, default=None)
        if order is not None:
            payload["order"] = order

        # The server applies its own defaults for anything left empty
        return {
            key: value for key, value in payload.items()
            if value is not None and value != "" and value != []
        }


# ============================================================================
# QUOTE
# ============================================================================

@register_draft
@dataclass
class QuoteDraft(EntityDraft):
    """Two-step quote editor: the quote itself, then presentation."""
    KIND: ClassVar[str] = config.KIND_QUOTE
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (
        WizardStep("Quote", ("text", "author", "field_of_work", "category")),
        WizardStep("Presentation"),
    )
    FIELD_LABELS: ClassVar[Dict[str, str]] = {
        "text": "Quote text",
        "author": "Author name",
        "field_of_work": "Field",
        "category": "Category",
    }
    MAX_LENGTHS: ClassVar[Dict[str, int]] = {
        "text": config.QUOTE_TEXT_MAX_LENGTH,
        "author": config.QUOTE_AUTHOR_MAX_LENGTH,
        "field_of_work": config.QUOTE_FIELD_MAX_LENGTH,
    }

    text: str = ""
    author: str = ""
    field_of_work: str = ""
    category: str = "programming"
    command: str = ""
    featured: bool = False
    tags: List[str] = field(default_factory=list)
    source: str = ""
    context: str = ""
    priority: int = 0
    active: bool = True

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "QuoteDraft":
        return cls(
            entity_id=entity.get("_id", entity.get("id")),
            text=entity.get("text") or "",
            author=entity.get("author") or "",
            field_of_work=entity.get("field") or "",
            category=entity.get("category") or "programming",
            command=entity.get("command") or "",
            featured=bool(entity.get("featured", False)),
            tags=list(entity.get("tags") or []),
            source=entity.get("source") or "",
            context=entity.get("context") or "",
            priority=entity.get("priority") or 0,
            active=bool(entity.get("active", True)),
        )

    def _extra_step_errors(self, step, errors):
        extra = {}
        if step == 2:
            message = integer_error(self.priority, "Priority")
            if message:
                extra["priority"] = message
        if step != 1:
            return extra
        for name, limit in self.MAX_LENGTHS.items():
            if name not in errors and len(_clean(getattr(self, name)) or "") > limit:
                label = self.FIELD_LABELS[name]
                extra[name] = f"{label} cannot exceed {limit} characters"
        if self.category and "category" not in errors and self.category not in config.QUOTE_CATEGORIES:
            extra["category"] = f"Category must be one of: {', '.join(config.QUOTE_CATEGORIES)}"
        return extra

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "text": _clean(self.text),
            "author": _clean(self.author),
            "field": _clean(self.field_of_work),
            "category": self.category,
            "featured": bool(self.featured),
            "tags": parse_list_field(self.tags),
            "priority": _as_int(self.priority),
            "active": bool(self.active),
        }
        for key in ("command", "source", "context"):
            value = _clean(getattr(self, key))
            if value:
                payload[key] = value
        return payload


# ============================================================================
# SKILL
# ============================================================================

@register_draft
@dataclass
class SkillDraft(EntityDraft):
    """Single-step skill editor."""
    KIND: ClassVar[str] = config.KIND_SKILL
    STEPS: ClassVar[Tuple[WizardStep, ...]] = (
        WizardStep("Skill", ("name", "category")),
    )
    FIELD_LABELS: ClassVar[Dict[str, str]] = {"name": "Skill name", "category": "Category"}

    name: str = ""
    category: str = "Frontend"
    proficiency: int = 50
    experience: str = "1 year"
    icon: str = ""
    description: str = ""
    certifications: List[str] = field(default_factory=list)
    order: int = 0

    @classmethod
    def from_entity(cls, entity: Dict[str, Any]) -> "SkillDraft":
        proficiency = entity.get("proficiency")
        return cls(
            entity_id=entity.get("_id", entity.get("id")),
            name=entity.get("name") or "",
            category=entity.get("category") or "Frontend",
            proficiency=50 if proficiency is None else proficiency,
            experience=entity.get("experience") or "",
            icon=entity.get("icon") or "",
            description=entity.get("description") or "",
            certifications=list(entity.get("certifications") or []),
            order=entity.get("order") or 0,
        )

    def _extra_step_errors(self, step, errors):
        extra = {}
        if self.category and "category" not in errors and self.category not in config.SKILL_CATEGORIES:
            extra["category"] = f"Category must be one of: {', '.join(config.SKILL_CATEGORIES)}"
        try:
            proficiency = int(self.proficiency)
        except (TypeError, ValueError):
            extra["proficiency"] = "Proficiency must be a number"
        else:
            if not 0 <= proficiency <= 100:
                extra["proficiency"] = "Proficiency must be between 0 and 100"
        message = integer_error(self.order, "Order")
        if message:
            extra["order"] = message
        return extra

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": _clean(self.name),
            "category": self.category,
            "proficiency": int(self.proficiency),
            "experience": _clean(self.experience),
            "icon": _clean(self.icon),
            "description": _clean(self.description),
            "certifications": parse_list_field(self.certifications),
            "order": _as_int(self.order),
        }
