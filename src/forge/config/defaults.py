"""Default configuration values and keyword tables."""

# Default model id per agent role
DEFAULT_ROLE_MODELS = {
    "planner": "groq",
    "executor": "groq",
    "reviewer": "groq",
    "reflection": "groq",
}

# Providers a user profile may name as its preferred model
DEFAULT_ALLOWED_PROVIDERS = ["groq", "gemini", "openai", "anthropic", "deepseek"]

# Greeting and acknowledgement words that mark a request as simple
DEFAULT_SIMPLE_REQUEST_KEYWORDS = ["hello", "hi", "thanks", "ok", "yes", "no"]

# Language detection word lists (Indonesian vs English)
INDONESIAN_KEYWORDS = [
    "apa", "yang", "dengan", "untuk", "dari", "pada", "adalah", "akan", "sudah",
    "belum", "tolong", "bantu", "buat", "ubah", "ganti",
    "jelaskan", "terangkan", "bagaimana", "mengapa", "dimana", "kapan", "siapa",
]

ENGLISH_KEYWORDS = [
    "what", "how", "why", "when", "where", "who", "which", "can", "could", "should",
    "would", "please", "help", "create", "make", "change", "update",
    "explain", "describe", "tell", "show", "build", "generate", "modify",
]

# Leading verbs recognized as commands, grouped by action
COMMAND_VERBS = {
    "create": ["buat", "create", "generate", "build", "make"],
    "edit": ["ubah", "edit", "change", "modify", "update"],
    "delete": ["hapus", "delete", "remove"],
    "add": ["tambah", "add", "insert"],
}

# Requirement extraction tables, checked in order
FRAMEWORK_HINTS = {
    "next.js": "nextjs",
    "nextjs": "nextjs",
    "next": "nextjs",
    "react": "react",
    "vite": "vite",
    "html": "html",
}

COMPONENT_HINTS = [
    "button", "form", "card", "modal", "navbar", "footer", "hero", "sidebar", "dropdown", "table",
]

FEATURE_HINTS = [
    "auth", "authentication", "login", "signup", "payment", "stripe", "database", "api", "crud",
]

STYLE_HINTS = {
    "minimal": ["minimal", "simple", "clean"],
    "modern": ["modern", "contemporary", "trendy"],
    "glassmorphism": ["glassmorphism", "glass", "frosted"],
    "gradient": ["gradient", "gradien"],
    "dark": ["dark", "dark mode"],
    "light": ["light", "light mode"],
}

# History analysis keyword tables for the user profile
PROFILE_INTENT_KEYWORDS = {
    "code_generation": ["buat", "create", "generate", "build", "make"],
    "explanation": ["jelaskan", "explain", "how", "what", "why"],
    "edit": ["ubah", "edit", "change", "modify", "update"],
}

PROFILE_FRAMEWORK_KEYWORDS = {
    "react": ["react"],
    "nextjs": ["next", "nextjs", "next.js"],
    "vite": ["vite"],
}

PROFILE_STYLE_KEYWORDS = {
    "minimal": ["minimal", "simple", "clean"],
    "modern": ["modern", "contemporary"],
    "dark": ["dark", "dark mode"],
}

# Circuit breaker ceiling for total execute/review iterations per request
MAX_TOTAL_ATTEMPTS = 10
