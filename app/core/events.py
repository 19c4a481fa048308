STARTED = "started"
PROGRESS = "progress"
COMPLETE = "complete"
ERROR = "error"

TERMINAL_STATUSES = frozenset({COMPLETE, ERROR})

AUTHENTICATING = "authenticating"
EXTRACTING_JD_INFO = "extracting_jd_info"
PARSING_RESUME = "parsing_resume"
MAPPING_KEYWORDS = "mapping_keywords"
REWRITING_BULLET = "rewriting_bullet"
REWRITING_SUMMARY = "rewriting_summary"
REWRITING_SKILLS = "rewriting_skills"
REWRITING_PROJECTS = "rewriting_projects"
PERSIST = "persist"
