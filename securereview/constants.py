"""Constants shared across the secure code review action."""

# Exit codes
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2

# Chat completion defaults
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 20000
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
REVIEW_TEMPERATURE = 0.2

# Review budget defaults
DEFAULT_TIME_BUDGET_SECONDS = 120
DEFAULT_MAX_FILES = 30
DEFAULT_MAX_LINES = 1200
DEFAULT_LINE_TRIM_PER_FILE = 300

# File extensions worth a security review
DEFAULT_RISKY_EXTENSIONS = (
    "js,ts,tsx,jsx,py,go,rb,php,java,kt,cs,rs,swift,c,cc,cpp,h,sql,sh,ps1,"
    "yml,yaml,json,html,htm,css,scss,vue,mdx,tf,tfvars,hcl"
)

# GitHub API
DEFAULT_GITHUB_API_URL = "https://api.github.com"
GITHUB_PAGE_SIZE = 100
HTTP_TIMEOUT_SECONDS = 60
FAILURE_COMMENT_GRACE_SECONDS = 30

# Secret scan report
DEFAULT_FINDINGS_REPORT_PATH = "gitleaks-report.json"
DEFAULT_MAX_FINDINGS_DISPLAY = 10

# PR comment
COMMENT_TAG = "<!-- secure-code-review-bot -->"
COMMENT_HEADER = "## 🔐 Secure Code Review (AI)"
COMMENT_FOOTER = "_Models can make mistakes. Verify before merging._"
NO_ELIGIBLE_CHANGES_MESSAGE = "No eligible code changes."
NO_MODEL_OUTPUT_MESSAGE = "No output from model."
