#!/usr/bin/env python3
"""
Secure Code Review for GitHub Actions
Sends the changed hunks of a pull request to a chat completion endpoint for a
security review and maintains a single PR comment with the result
"""

import os
import sys
import json
import copy
import fnmatch
import requests
from typing import Dict, Any, List, Mapping, Optional, Tuple
from pathlib import Path

from securereview.budget import ReviewBudget
from securereview.config import ConfigurationError, MissingPullRequestContext, ReviewConfig
from securereview.constants import (
    DEFAULT_GITHUB_API_URL,
    EXIT_CONFIGURATION_ERROR,
    EXIT_GENERAL_ERROR,
    EXIT_SUCCESS,
    FAILURE_COMMENT_GRACE_SECONDS,
    GITHUB_PAGE_SIZE,
    HTTP_TIMEOUT_SECONDS,
    NO_ELIGIBLE_CHANGES_MESSAGE,
    REVIEW_TEMPERATURE,
)
from securereview.diff_collector import DiffLimits, collect_changed_files
from securereview.findings_report import format_findings_section, load_findings_report
from securereview.format_pr_comments import (
    compose_comment_body,
    find_marker_comment,
    format_failure_message,
    format_review_content,
)
from securereview.logger import get_logger
from securereview.prompts import build_messages, build_user_message, load_system_prompt

logger = get_logger(__name__)


class ReviewClientError(RuntimeError):
    """Raised when the chat completion endpoint rejects a request."""
    pass


class QuotaExceeded(ReviewClientError):
    """Raised on HTTP 429 from the chat completion endpoint."""

    def __init__(self, body: str = ""):
        super().__init__("API quota exceeded (HTTP 429)")
        self.body = body


class UpstreamError(ReviewClientError):
    """Raised on any other non-success status from the chat completion endpoint."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Chat completion HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class GitHubActionClient:
    """Simplified GitHub API client for GitHub Actions environment."""

    # Lock files are JSON/YAML but never worth a security review
    BUILTIN_EXCLUDED_PATTERNS = [
        'package-lock.json',
        'pnpm-lock.yaml',
        'composer.lock',
        'packages.lock.json',
        '*.min.js',
        '*.min.css',
        '*.bundle.js',
        '*.map',
    ]

    # Built-in directories that should always be excluded
    BUILTIN_EXCLUDED_DIRS = [
        'node_modules',
        'vendor',
        'dist',
        'build',
        '.next',
        '__pycache__',
    ]

    def __init__(self, budget: ReviewBudget, exclude_directories: Optional[List[str]] = None):
        """Initialize GitHub client using environment variables."""
        self.github_token = os.environ.get('GITHUB_TOKEN')
        if not self.github_token:
            raise ConfigurationError("GITHUB_TOKEN environment variable required")

        self.budget = budget
        self.api_url = (os.environ.get('GITHUB_API_URL') or DEFAULT_GITHUB_API_URL).rstrip('/')
        self.headers = {
            'Authorization': f'Bearer {self.github_token}',
            'Accept': 'application/vnd.github.v3+json',
            'X-GitHub-Api-Version': '2022-11-28'
        }

        user_excluded_dirs = exclude_directories or []
        self.excluded_dirs = sorted(set(self.BUILTIN_EXCLUDED_DIRS + user_excluded_dirs))
        if user_excluded_dirs:
            logger.debug(f"User excluded directories: {user_excluded_dirs}")

    def list_pr_files(self, repo_name: str, pr_number: int, page: int = 1,
                      per_page: int = GITHUB_PAGE_SIZE) -> List[Dict[str, Any]]:
        """Get one page of changed files for a PR.

        GitHub omits 'patch' for binary files and files above its size limit.
        """
        url = f"{self.api_url}/repos/{repo_name}/pulls/{pr_number}/files"
        response = requests.get(url, headers=self.headers, params={'per_page': per_page, 'page': page},
                                timeout=HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    def list_issue_comments(self, repo_name: str, pr_number: int) -> List[Dict[str, Any]]:
        """Get the first page of issue comments on a PR."""
        self.budget.check()
        url = f"{self.api_url}/repos/{repo_name}/issues/{pr_number}/comments"
        response = requests.get(url, headers=self.headers, params={'per_page': GITHUB_PAGE_SIZE},
                                timeout=HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    def create_comment(self, repo_name: str, pr_number: int, body: str) -> Dict[str, Any]:
        self.budget.check()
        url = f"{self.api_url}/repos/{repo_name}/issues/{pr_number}/comments"
        response = requests.post(url, headers=self.headers, json={'body': body}, timeout=HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    def update_comment(self, repo_name: str, comment_id: int, body: str) -> Dict[str, Any]:
        self.budget.check()
        url = f"{self.api_url}/repos/{repo_name}/issues/comments/{comment_id}"
        response = requests.patch(url, headers=self.headers, json={'body': body}, timeout=HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()

    def upsert_pr_comment(self, repo_name: str, pr_number: int, content: str) -> Tuple[str, Any]:
        """Create or update the single marker-tagged review comment.

        Returns:
            Tuple of (action, comment_id) where action is 'created' or 'updated'
        """
        body = compose_comment_body(content)
        existing = find_marker_comment(self.list_issue_comments(repo_name, pr_number))

        if existing:
            self.update_comment(repo_name, existing['id'], body)
            logger.info(f"Updated review comment {existing['id']} on PR #{pr_number}")
            return 'updated', existing['id']

        created = self.create_comment(repo_name, pr_number, body)
        logger.info(f"Created review comment {created.get('id')} on PR #{pr_number}")
        return 'created', created.get('id')

    def with_budget(self, budget: ReviewBudget) -> "GitHubActionClient":
        """Return a copy of this client bound to another budget."""
        clone = copy.copy(self)
        clone.budget = budget
        return clone

    def is_excluded(self, filepath: str) -> bool:
        """Check if a file should be excluded based on directory or file patterns."""
        for excluded_dir in self.excluded_dirs:
            normalized_excluded = excluded_dir[2:] if excluded_dir.startswith('./') else excluded_dir
            normalized_excluded = normalized_excluded.strip('/')

            if filepath.startswith(normalized_excluded + '/'):
                return True
            if '/' + normalized_excluded + '/' in filepath:
                return True

        filename = filepath.split('/')[-1]
        for pattern in self.BUILTIN_EXCLUDED_PATTERNS:
            if fnmatch.fnmatch(filename, pattern):
                return True

        return False


class ChatCompletionClient:
    """Single-attempt client for an OpenAI compatible chat completion endpoint."""

    def __init__(self, api_key: str, budget: ReviewBudget, model: str, max_tokens: int,
                 base_url: str, organization: str = ""):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable required")
        self.api_key = api_key
        self.budget = budget
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url.rstrip('/')
        self.organization = organization

    @classmethod
    def from_config(cls, config: ReviewConfig, budget: ReviewBudget) -> "ChatCompletionClient":
        return cls(
            api_key=config.openai_api_key,
            budget=budget,
            model=config.model,
            max_tokens=config.max_tokens,
            base_url=config.openai_base_url,
            organization=config.openai_org,
        )

    @property
    def headers(self) -> Dict[str, str]:
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        if self.organization:
            headers['OpenAI-Organization'] = self.organization
        return headers

    def complete(self, system_prompt: str, user_content: str) -> str:
        """Run one chat completion and return the stripped text of the first choice.

        Raises:
            QuotaExceeded: On HTTP 429
            UpstreamError: On any other non-success status
        """
        payload = {
            'model': self.model,
            'max_tokens': self.max_tokens,
            'temperature': REVIEW_TEMPERATURE,
            'messages': build_messages(system_prompt, user_content),
        }

        self.budget.check()
        response = requests.post(f"{self.base_url}/chat/completions", headers=self.headers,
                                 json=payload, timeout=HTTP_TIMEOUT_SECONDS)

        if response.status_code == 429:
            raise QuotaExceeded(response.text)
        if not response.ok:
            raise UpstreamError(response.status_code, response.text)

        return self._extract_content(response.json())

    def _extract_content(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ''
        choices = data.get('choices') or []
        if not choices or not isinstance(choices[0], dict):
            return ''
        message = choices[0].get('message') or {}
        content = message.get('content') if isinstance(message, dict) else None
        return content.strip() if isinstance(content, str) else ''


def _read_event_pr_number(event_path: str) -> Optional[int]:
    """Read pull_request.number from the GitHub event payload, if any."""
    if not event_path or not Path(event_path).is_file():
        return None
    try:
        with open(event_path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read event payload {event_path}: {e}")
        return None
    pull_request = payload.get('pull_request') if isinstance(payload, dict) else None
    number = pull_request.get('number') if isinstance(pull_request, dict) else None
    return number if isinstance(number, int) and number > 0 else None


def get_environment_config(env: Optional[Mapping[str, str]] = None) -> Tuple[str, int]:
    """Get and validate the pull request context.

    Returns:
        Tuple of (repo_name, pr_number)

    Raises:
        ConfigurationError: If GITHUB_REPOSITORY is missing
        MissingPullRequestContext: If no pull request number is available
    """
    env = os.environ if env is None else env
    repo_name = env.get('GITHUB_REPOSITORY')
    if not repo_name:
        raise ConfigurationError('GITHUB_REPOSITORY environment variable required')

    pr_number = _read_event_pr_number(env.get('GITHUB_EVENT_PATH', ''))
    if pr_number is None:
        pr_number_str = env.get('PR_NUMBER', '')
        if not pr_number_str:
            raise MissingPullRequestContext('This action must run on pull_request events.')
        try:
            pr_number = int(pr_number_str)
        except ValueError:
            raise MissingPullRequestContext(f'Invalid PR_NUMBER: {pr_number_str}')

    return repo_name, pr_number


def run_review(github_client: GitHubActionClient, review_client: ChatCompletionClient,
               config: ReviewConfig, budget: ReviewBudget, repo_name: str, pr_number: int) -> Dict[str, Any]:
    """Collect diffs, review them and publish the comment.

    Returns:
        Run summary dictionary
    """
    limits = DiffLimits(
        max_files=config.max_files,
        max_total_lines=config.max_lines,
        max_lines_per_file=config.max_lines_per_file,
        extensions=config.extensions,
    )
    collection = collect_changed_files(github_client, repo_name, pr_number, limits, budget)

    summary: Dict[str, Any] = {
        'pr_number': pr_number,
        'repo': repo_name,
        'files_reviewed': len(collection.files),
        'total_lines': collection.total_lines,
        'stop_reason': collection.stop_reason,
        'findings_reported': 0,
    }

    if not collection.files:
        logger.info("No eligible files, skipping model review")
        action, comment_id = github_client.upsert_pr_comment(repo_name, pr_number, NO_ELIGIBLE_CHANGES_MESSAGE)
        summary.update({'comment_action': action, 'comment_id': comment_id})
        return summary

    system_prompt = load_system_prompt(config.custom_review_instructions or None)
    user_message = build_user_message(collection.files)
    logger.info(f"Requesting review from {config.model} ({len(user_message):,} chars, "
                f"{budget.remaining():.0f}s of budget left)")
    analysis = review_client.complete(system_prompt, user_message)

    report = load_findings_report(config.findings_report_path)
    findings_section = format_findings_section(report, config.max_findings_display)

    content = format_review_content(analysis, findings_section)
    action, comment_id = github_client.upsert_pr_comment(repo_name, pr_number, content)
    summary.update({
        'findings_reported': len(report),
        'comment_action': action,
        'comment_id': comment_id,
    })
    return summary


def report_failure(github_client: GitHubActionClient, repo_name: str, pr_number: int,
                   error: BaseException) -> bool:
    """Best-effort failure comment. Never raises.

    The comment gets its own short budget so a run that failed on the review
    deadline can still report it.
    """
    message = format_failure_message(error, quota_exceeded=isinstance(error, QuotaExceeded))
    grace = ReviewBudget.start(FAILURE_COMMENT_GRACE_SECONDS)
    try:
        github_client.with_budget(grace).upsert_pr_comment(repo_name, pr_number, message)
        return True
    except Exception as e:
        logger.warning(f"Failed to post failure comment on PR #{pr_number}: {e}")
        return False


def main():
    """Main execution function for GitHub Action."""
    config = ReviewConfig.from_env(os.environ)
    budget = ReviewBudget.start(config.time_budget_seconds)
    logger.debug(f"Configuration: {config.summary()}")

    try:
        repo_name, pr_number = get_environment_config()
        github_client = GitHubActionClient(budget, config.exclude_directories)
    except ConfigurationError as e:
        logger.error(str(e))
        print(json.dumps({'error': str(e)}))
        sys.exit(EXIT_CONFIGURATION_ERROR)

    try:
        review_client = ChatCompletionClient.from_config(config, budget)
        summary = run_review(github_client, review_client, config, budget, repo_name, pr_number)
    except Exception as e:
        logger.error(f"Review failed: {e}")
        report_failure(github_client, repo_name, pr_number, e)
        print(json.dumps({'error': str(e), 'pr_number': pr_number, 'repo': repo_name}))
        sys.exit(EXIT_GENERAL_ERROR)

    print(json.dumps(summary, indent=2))
    sys.exit(EXIT_SUCCESS)


if __name__ == '__main__':
    main()
