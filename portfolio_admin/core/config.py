"""
Application Configuration and Constants
=======================================

This module contains all global configuration values, constants, and defaults used
throughout the admin console. It serves as a single source of truth for:

- Retry and backoff parameters
- Network timeouts
- Upload ceilings and accepted media types
- Content API endpoint paths and entity kinds
- Draft defaults and enumerations mirrored from the backend models

Note:
    All constants use UPPER_SNAKE_CASE naming convention. Modify these values to
    change application-wide behavior without touching business logic.

Author: Portfolio Admin Project
"""

# ============================================================================
# APPLICATION SETTINGS
# ============================================================================

APP_NAME = "Portfolio Admin"

# Default Content API location used when nothing is configured
DEFAULT_API_URL = "http://localhost:5000/api"

# Default media host endpoint (Cloudinary-compatible upload API)
DEFAULT_MEDIA_API_BASE = "https://api.cloudinary.com"

# ============================================================================
# NETWORK AND RETRY SETTINGS
# ============================================================================
# Only rate-limited calls are retried. The delay before retry n (0-based) is
# RETRY_BASE_DELAY_MS * RETRY_BACKOFF_MULTIPLIER ** n.

MAX_RETRIES = 3  # Total attempts, including the first
RETRY_BASE_DELAY_MS = 500
RETRY_BACKOFF_MULTIPLIER = 2.0

NETWORK_TIMEOUT_SECONDS = 30
UPLOAD_TIMEOUT_SECONDS = 120

# Worker threads used to run blocking HTTP calls off the event loop
MAX_NETWORK_WORKERS = 8

# ============================================================================
# UPLOAD LIMITS
# ============================================================================

MAX_IMAGE_SIZE_MB = 10
MAX_IMAGE_SIZE_BYTES = MAX_IMAGE_SIZE_MB * 1024 * 1024

MAX_DOCUMENT_SIZE_MB = 5
MAX_DOCUMENT_SIZE_BYTES = MAX_DOCUMENT_SIZE_MB * 1024 * 1024

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")
ALLOWED_DOCUMENT_TYPES = ("application/pdf",)

# Media host folder and tags applied to gallery uploads
DEFAULT_UPLOAD_FOLDER = "portfolio"
PROJECT_UPLOAD_FOLDER = "portfolio/projects"
BLOG_UPLOAD_FOLDER = "portfolio/blogs"

# Thumbnail size used for local previews of pending uploads
PREVIEW_MAX_SIZE = (320, 320)

# ============================================================================
# ENTITY KINDS AND ENDPOINTS
# ============================================================================

KIND_PROJECT = "project"
KIND_BLOG = "blog"
KIND_EXPERIENCE = "experience"
KIND_QUOTE = "quote"
KIND_SKILL = "skill"
KIND_RESUME = "resume"
KIND_CONTACT = "contact"

ENTITY_KINDS = (
    KIND_PROJECT, KIND_BLOG, KIND_EXPERIENCE, KIND_QUOTE,
    KIND_SKILL, KIND_RESUME, KIND_CONTACT,
)

# Kinds whose failure during the initial load does not fail the dashboard
NON_CRITICAL_KINDS = (KIND_RESUME,)

# Analytics payload used when the analytics endpoint is unavailable
DEFAULT_ANALYTICS = {
    "totalVisits": 0,
    "uniqueVisitors": 0,
    "deviceStats": [],
    "countryStats": [],
    "topPages": [],
}

# ============================================================================
# SLUG SETTINGS
# ============================================================================

DEFAULT_SLUG_FALLBACK = "untitled-project"

# ============================================================================
# DRAFT DEFAULTS AND ENUMERATIONS
# ============================================================================
# Values mirror the backend models so drafts fail fast on the client.

PROJECT_CATEGORIES = [
    "E-commerce", "Social Media", "SaaS", "Portfolio",
    "API", "Dashboard", "Mobile App", "Other",
]
PROJECT_TYPES = ["Full Stack", "Frontend", "Backend", "Mobile App", "API"]
PROJECT_STATUSES = ["completed", "in-progress", "maintained"]
PROJECT_IMAGE_TYPES = ["cover", "screenshot", "diagram", "mockup"]
TECHNOLOGY_GROUPS = ["frontend", "backend", "database", "devops", "tools"]
PROJECT_LINK_KEYS = ["live", "github", "demo", "caseStudy", "apiDocs"]

BLOG_CATEGORIES = ["Tutorial", "Best Practices", "Case Study", "Tech Review", "Career", "Other"]
BLOG_EXCERPT_MAX_LENGTH = 300

QUOTE_TEXT_MAX_LENGTH = 500
QUOTE_AUTHOR_MAX_LENGTH = 100
QUOTE_FIELD_MAX_LENGTH = 50

EXPERIENCE_TYPES = ["Full-time", "Part-time", "Freelance", "Contract", "Internship"]

QUOTE_CATEGORIES = [
    "programming", "development", "technology", "innovation", "design",
    "leadership", "ai", "web", "software", "other",
]

SKILL_CATEGORIES = [
    "Frontend", "Backend", "Database", "DevOps", "Tools", "Data Analytics", "Soft Skills",
]

CONTACT_STATUSES = ["new", "read", "replied", "archived"]

# ============================================================================
# USER-FACING MESSAGES
# ============================================================================

DELETE_CONFIRMATION_TEMPLATE = (
    "Are you sure you want to delete this {kind}? This action cannot be undone."
)
DASHBOARD_LOAD_FAILED_MESSAGE = "Failed to load dashboard data. Please try again."
