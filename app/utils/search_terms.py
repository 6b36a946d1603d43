"""Term lists for the fallback synthesizer — English and German.

Substring lists are matched case-insensitively against single tokens.
Keep the stopword lists short: an ambiguous term is better kept than dropped.
"""

from app.orchestrator.schemas import Language, QueryType

# Function words used both for stopword removal and for language detection
STOPWORDS: dict[Language, frozenset[str]] = {
    Language.EN: frozenset({
        "a", "an", "and", "the", "of", "in", "for", "with", "to", "or", "at", "on", "is", "we", "you",
    }),
    Language.DE: frozenset({
        "und", "der", "die", "das", "mit", "für", "im", "oder", "ein", "eine", "zu", "von", "wir", "sie",
    }),
}

# A single hit on one of these marks the text as German; English is the default
LANGUAGE_MARKERS: dict[Language, frozenset[str]] = {
    Language.DE: frozenset({
        "und", "der", "die", "das", "mit", "für", "wir", "sie", "ist", "eine", "einen", "oder", "bei",
    }),
}

DEFAULT_LANGUAGE = Language.EN

# ═══════════════ BUCKET PATTERNS ═══════════════

JOB_TITLE_SUBSTRINGS: tuple[str, ...] = (
    "manager", "engineer", "developer", "specialist", "consultant", "analyst", "architect",
    "administrator", "designer", "director", "officer", "assistant", "accountant", "recruiter",
    "technician", "scientist", "coordinator", "executive", "programmer", "tester",
    "ceo", "cto", "cfo", "coo", "cio",
    # German role words
    "entwickler", "ingenieur", "leiter", "berater", "referent", "sachbearbeiter", "buchhalter",
    "kaufmann", "kauffrau", "fachkraft", "mitarbeiter", "techniker", "geschäftsführer",
    "vertrieb", "steuerfachangestellte",
)

SKILL_SUBSTRINGS: tuple[str, ...] = (
    "python", "java", "javascript", "typescript", "c++", "c#", "golang", "kotlin", "swift",
    "php", "ruby", "scala", "sql", "react", "angular", "vue", "node", "django", "spring",
    "docker", "kubernetes", "terraform", "aws", "azure", "gcp", "linux", "devops", "agile",
    "scrum", "sap", "excel", "salesforce", "crm", "erp", "datev", "powerbi", "tableau",
    # German experience/skill words
    "erfahrung", "kenntnisse", "ausbildung", "studium", "zertifik",
)

LOCATION_SUBSTRINGS: tuple[str, ...] = (
    "berlin", "hamburg", "münchen", "muenchen", "munich", "köln", "koeln", "cologne", "frankfurt",
    "stuttgart", "düsseldorf", "duesseldorf", "dortmund", "bremen", "leipzig", "dresden",
    "hannover", "nürnberg", "nuernberg", "wien", "vienna", "zürich", "zurich", "london", "paris",
    "amsterdam", "remote", "homeoffice", "home-office",
)

LOCATION_PATTERNS: tuple[str, ...] = (
    r"\d+\s*km",
)

EXPERIENCE_PATTERNS: tuple[str, ...] = (
    r"\d+\s*[jy]",
    r"\bsenior\b",
    r"\bjunior\b",
)

# ═══════════════ CLOSING CLAUSES ═══════════════

CLOSING_TERMS: dict[tuple[QueryType, Language], tuple[str, ...]] = {
    (QueryType.RECRUITING, Language.EN): ("Resume", "CV"),
    (QueryType.RECRUITING, Language.DE): ("Lebenslauf", "CV"),
    (QueryType.LEAD_GENERATION, Language.EN): ("Company", "Business"),
    (QueryType.LEAD_GENERATION, Language.DE): ("Unternehmen", "Firma"),
}
