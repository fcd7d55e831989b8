"""Interactive helper for mirroring external repositories with git subtree.

Menu actions are dispatched through a table keyed by MenuAction; all
prompting goes through an InputProvider so the handlers can be driven
from tests without a terminal. Subtree semantics are left entirely to git.
"""

import logging
import shutil
import subprocess
from collections import deque
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol

import click

logger = logging.getLogger(__name__)


class MenuAction(str, Enum):
    ADD = "1"
    UPDATE = "2"
    PUSH = "3"
    LIST = "4"
    REMOVE = "5"
    QUIT = "6"


MENU_LABELS: Dict[MenuAction, str] = {
    MenuAction.ADD: "Add an external repository",
    MenuAction.UPDATE: "Update an external repository",
    MenuAction.PUSH: "Push changes to an external repository",
    MenuAction.LIST: "List external repositories",
    MenuAction.REMOVE: "Remove an external repository",
    MenuAction.QUIT: "Quit",
}


class NotAGitRepositoryError(Exception):
    pass


class InputProvider(Protocol):
    def ask(self, prompt: str, default: Optional[str] = None) -> str: ...

    def confirm(self, prompt: str, default: bool = False) -> bool: ...


class ConsoleInput:
    """Reads answers from the terminal."""

    def ask(self, prompt: str, default: Optional[str] = None) -> str:
        return click.prompt(prompt, default=default or "", show_default=bool(default)).strip()

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return click.confirm(prompt, default=default)


class ScriptedInput:
    """Feeds pre-recorded answers, in order. Empty answers take the default."""

    def __init__(self, answers: Iterable[str]):
        self.answers = deque(answers)
        self.prompts: List[str] = []

    def _next(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError(f"No scripted answer for: {prompt}")
        return self.answers.popleft()

    def ask(self, prompt: str, default: Optional[str] = None) -> str:
        answer = self._next(prompt).strip()
        return answer or (default or "")

    def confirm(self, prompt: str, default: bool = False) -> bool:
        answer = self._next(prompt).strip().lower()
        if not answer:
            return default
        return answer in ("y", "yes")


class GitClient:
    """Thin subprocess wrapper around the git CLI."""

    def __init__(self, cwd: Optional[Path] = None, git: str = "git"):
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.git = git

    def run(self, *args: str, check: bool = False) -> subprocess.CompletedProcess:
        cmd = [self.git, *args]
        logger.debug(f"git: {' '.join(cmd)}")
        return subprocess.run(
            cmd, cwd=self.cwd, capture_output=True, text=True, check=check
        )

    def is_repository(self) -> bool:
        try:
            return self.run("rev-parse", "--git-dir").returncode == 0
        except OSError:
            return False

    def remotes(self) -> List[str]:
        proc = self.run("remote")
        return [line.strip() for line in proc.stdout.splitlines() if line.strip()]

    def remote_url(self, name: str) -> Optional[str]:
        proc = self.run("remote", "get-url", name)
        return proc.stdout.strip() if proc.returncode == 0 else None

    def subtree_path(self, remote: str) -> Optional[str]:
        proc = self.run("config", "--local", "--get", f"subtree.{remote}.path")
        value = proc.stdout.strip()
        return value if proc.returncode == 0 and value else None

    def set_subtree_path(self, remote: str, path: str) -> None:
        self.run("config", "--local", f"subtree.{remote}.path", path)

    def unset_subtree_path(self, remote: str) -> None:
        self.run("config", "--local", "--unset", f"subtree.{remote}.path")


class SubtreeTool:
    """The menu actions. Each handler returns True on success."""

    def __init__(self, git: GitClient, inputs: InputProvider):
        self.git = git
        self.inputs = inputs
        self.handlers: Dict[MenuAction, Callable[[], bool]] = {
            MenuAction.ADD: self.add,
            MenuAction.UPDATE: self.update,
            MenuAction.PUSH: self.push,
            MenuAction.LIST: self.list_repos,
            MenuAction.REMOVE: self.remove,
        }

    def _fail(self, message: str) -> bool:
        click.secho(f"[ERROR] {message}", fg="red")
        logger.error(message)
        return False

    def _git_step(self, description: str, *args: str) -> bool:
        click.echo(f"[INFO] {description}...")
        proc = self.git.run(*args)
        if proc.stdout:
            click.echo(proc.stdout.rstrip())
        if proc.returncode != 0:
            if proc.stderr:
                click.echo(proc.stderr.rstrip(), err=True)
            return False
        return True

    def _show_external_remotes(self) -> None:
        for remote in self.git.remotes():
            if remote != "origin":
                click.echo(f"  {remote}\t{self.git.remote_url(remote) or ''}")

    def _resolve_target_dir(self, remote: str) -> str:
        target_dir = self.git.subtree_path(remote)
        if target_dir:
            return target_dir
        click.secho(f"[WARN] No directory recorded for remote {remote}", fg="yellow")
        return self.inputs.ask("Target directory")

    def add(self) -> bool:
        repo_url = self.inputs.ask("External repository URL")
        if not repo_url:
            return self._fail("Repository URL must not be empty")
        branch = self.inputs.ask("Branch", default="main")
        target_dir = self.inputs.ask("Target directory")
        if not target_dir:
            return self._fail("Target directory must not be empty")
        squash = self.inputs.confirm("Squash history?", default=True)
        remote = self.inputs.ask("Remote name", default="external")

        if not self.inputs.confirm(f"Add {repo_url} ({branch}) at {target_dir}?"):
            click.echo("[INFO] Cancelled")
            return True

        if (self.git.cwd / target_dir).exists():
            return self._fail(f"Target directory {target_dir} already exists")

        if remote in self.git.remotes():
            click.secho(f"[WARN] Remote {remote} exists, updating its URL", fg="yellow")
            self.git.run("remote", "set-url", remote, repo_url)
        else:
            self.git.run("remote", "add", remote, repo_url)

        if not self._git_step("Fetching external repository", "fetch", remote):
            self.git.run("remote", "remove", remote)
            return self._fail(f"Failed to fetch {remote}")

        args = ["subtree", "add", f"--prefix={target_dir}", remote, branch]
        if squash:
            args.append("--squash")
        if not self._git_step("Adding subtree", *args):
            return self._fail("Failed to add external repository")

        self.git.set_subtree_path(remote, target_dir)
        click.secho(f"[INFO] Added {remote}/{branch} at {target_dir}", fg="green")
        return True

    def update(self) -> bool:
        self._show_external_remotes()
        remote = self.inputs.ask("Remote to update")
        if not remote:
            return self._fail("Remote name must not be empty")
        target_dir = self._resolve_target_dir(remote)
        if not target_dir:
            return self._fail("Target directory must not be empty")
        branch = self.inputs.ask("Branch", default="main")
        squash = self.inputs.confirm("Squash history?", default=True)

        if not self.inputs.confirm(f"Pull {remote}/{branch} into {target_dir}?"):
            click.echo("[INFO] Cancelled")
            return True

        if not self._git_step("Fetching latest changes", "fetch", remote):
            return self._fail(f"Failed to fetch {remote}")

        args = ["subtree", "pull", f"--prefix={target_dir}", remote, branch]
        if squash:
            args.append("--squash")
        if not self._git_step("Pulling subtree", *args):
            return self._fail("Failed to update external repository; resolve merge conflicts")
        click.secho(f"[INFO] Updated {target_dir}", fg="green")
        return True

    def push(self) -> bool:
        self._show_external_remotes()
        remote = self.inputs.ask("Remote to push to")
        if not remote:
            return self._fail("Remote name must not be empty")
        target_dir = self._resolve_target_dir(remote)
        if not target_dir:
            return self._fail("Target directory must not be empty")
        branch = self.inputs.ask("Branch", default="main")

        if not self.inputs.confirm(f"Push {target_dir} to {remote}/{branch}?"):
            click.echo("[INFO] Cancelled")
            return True

        args = ["subtree", "push", f"--prefix={target_dir}", remote, branch]
        if not self._git_step("Pushing subtree", *args):
            return self._fail("Push failed")
        click.secho("[INFO] Pushed", fg="green")
        return True

    def list_repos(self) -> bool:
        remotes = [r for r in self.git.remotes() if r != "origin"]
        if not remotes:
            click.echo("[INFO] No external repositories")
            return True
        for remote in remotes:
            click.echo(f"Remote: {remote}")
            click.echo(f"  URL: {self.git.remote_url(remote) or ''}")
            click.echo(f"  Directory: {self.git.subtree_path(remote) or 'unknown'}")
        return True

    def remove(self) -> bool:
        self._show_external_remotes()
        remote = self.inputs.ask("Remote to remove")
        if not remote:
            return self._fail("Remote name must not be empty")
        target_dir = self.git.subtree_path(remote)
        if not target_dir:
            target_dir = self.inputs.ask(
                "Directory to delete (empty removes only the remote)"
            )

        click.secho(f"[WARN] This removes remote {remote}", fg="yellow")
        if target_dir:
            click.secho(f"[WARN] and deletes directory {target_dir}", fg="yellow")
        if not self.inputs.confirm("Confirm removal?"):
            click.echo("[INFO] Cancelled")
            return True

        if not self._git_step("Removing remote", "remote", "remove", remote):
            return self._fail(f"Failed to remove remote {remote}")
        self.git.unset_subtree_path(remote)

        directory = self.git.cwd / target_dir if target_dir else None
        if directory is not None and directory.is_dir():
            shutil.rmtree(directory)
            self.git.run("add", "-A")
            self.git.run("commit", "-m", f"Remove external repository {remote}")
            click.echo(f"[INFO] Deleted {target_dir} and committed the removal")
        return True

    def dispatch(self, action: MenuAction) -> bool:
        return self.handlers[action]()

    def run_menu(self) -> int:
        if not self.git.is_repository():
            raise NotAGitRepositoryError(f"{self.git.cwd} is not a git repository")

        while True:
            click.echo("")
            click.echo("=" * 40)
            click.echo("  Git subtree helper")
            click.echo("=" * 40)
            for action, label in MENU_LABELS.items():
                click.echo(f"  {action.value}. {label}")
            choice = self.inputs.ask("Choice (1-6)")
            try:
                action = MenuAction(choice)
            except ValueError:
                click.secho("[ERROR] Invalid choice", fg="red")
                continue
            if action == MenuAction.QUIT:
                return 0
            self.dispatch(action)
