"""
cli.py

Responsibility: CLI entrypoint for dotfiles.

Commands:
- help [command]: usage
- init: create the bare repository that tracks files in the home directory
- git <args>: run git against that repository with the home directory as work tree
- files <pkg>...: list the home files each package installs (dry run of make)
- store <pkg>...: add those files to the repository and commit
- install <pkg>...: refuse to overwrite untracked or modified files, then run make install
- list / new / publish: package discovery, scaffolding and GitHub remote setup

This module orchestrates only:
- Settings: `config.py`
- git: `repo.py`
- make and package lookup: `packages.py`
- Scaffolding: `renderer.py`
- GitHub API: `github_client.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from dotfiles import __version__
from dotfiles.config import Config, load_config
from dotfiles.errors import DotfilesError
from dotfiles.github_client import GitHubClient, tokenized_https_remote
from dotfiles.packages import Builder, Package, discover_packages, package_path, resolve_package
from dotfiles.renderer import scaffold_package
from dotfiles.repo import DotfilesRepo

logger = logging.getLogger("dotfiles")

_HANDLER_NAME = "dotfiles-cli"

# Global options that consume the following argument.
_GLOBAL_VALUE_OPTIONS = frozenset({"--home", "--dotfiles-dir", "--git-dir", "--config"})


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG

    for h in list(logger.handlers):
        if h.get_name() == _HANDLER_NAME:
            logger.removeHandler(h)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _split_git_passthrough(argv: list[str]) -> tuple[list[str], list[str] | None]:
    """
    Split argv at the `git` command word.

    Everything after it belongs to git, even arguments argparse would read as options.
    """
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "git":
            return argv[: i + 1], argv[i + 1 :]
        if not arg.startswith("-") or arg == "--":
            break
        if arg in _GLOBAL_VALUE_OPTIONS:
            i += 1
        i += 1
    return argv, None


def _config(args: argparse.Namespace) -> Config:
    return load_config(
        config_path=args.config,
        overrides={"home": args.home, "dotfiles_dir": args.dotfiles_dir, "git_dir": args.git_dir},
    )


def _repo(cfg: Config) -> DotfilesRepo:
    return DotfilesRepo(cfg.git_dir, cfg.home, git=cfg.git)


def _packages(cfg: Config, names: list[str]) -> list[Package]:
    return [resolve_package(cfg.dotfiles_dir, name) for name in names]


def _package_files(builder: Builder, packages: list[Package]) -> list[str]:
    files: dict[str, None] = {}
    for pkg in packages:
        for f in builder.list_files(pkg):
            files.setdefault(f, None)
    return list(files)


def help_cmd(args: argparse.Namespace) -> int:
    topic = args.topic
    if topic is None:
        args.parser.print_help()
        return 0
    sub = args.commands.get(topic)
    if sub is None:
        raise DotfilesError(f"Unknown command: {topic}", exit_code=2)
    sub.print_help()
    return 0


def init_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    _repo(cfg).init()
    print(f"Dotfiles repository ready at {cfg.git_dir} (work tree {cfg.home})")
    return 0


def git_cmd(args: argparse.Namespace) -> int:
    repo = _repo(_config(args))
    repo.require()
    return repo.passthrough(args.git_args)


def files_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    builder = Builder(cfg.home, make=cfg.make)
    packages = _packages(cfg, args.packages)
    for pkg in packages:
        if len(packages) > 1:
            print(f"{pkg.name}:")
        for f in builder.list_files(pkg):
            print(f)
    return 0


def store_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    repo = _repo(cfg)
    repo.require()
    builder = Builder(cfg.home, make=cfg.make)

    files = _package_files(builder, _packages(cfg, args.packages))
    present: list[str] = []
    for f in files:
        if os.path.lexists(cfg.home / f):
            present.append(f)
        else:
            logger.warning("%s does not exist in %s, not storing it", f, cfg.home)

    repo.add(present)
    if not repo.has_staged_changes(present):
        print("Nothing to store.")
        return 0
    if args.no_commit:
        logger.info("staged %d file(s)", len(present))
        return 0

    message = args.message or f"Store {' '.join(args.packages)}"
    repo.commit(message)
    logger.info("committed %d file(s): %s", len(present), message)
    return 0


def install_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    repo = _repo(cfg)
    repo.require()
    builder = Builder(cfg.home, make=cfg.make)

    plan = [(pkg, builder.list_files(pkg)) for pkg in _packages(cfg, args.packages)]

    conflicts: dict[str, tuple[str, str]] = {}
    for pkg, files in plan:
        for path, reason in repo.conflicts(files).items():
            conflicts.setdefault(path, (pkg.name, reason))

    if conflicts:
        for path, (name, reason) in conflicts.items():
            logger.warning("%s: %s is %s and would be overwritten", name, cfg.home / path, reason)
        if not args.force:
            logger.error(
                "Refusing to install over %d file(s); store or remove them first, or pass --force.",
                len(conflicts),
            )
            return 1

    for pkg, _files in plan:
        code = builder.install(pkg)
        if code != 0:
            logger.error("make install failed for %s (exit %d)", pkg.name, code)
            return code
    return 0


def list_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    for pkg in discover_packages(cfg.dotfiles_dir):
        print(pkg.name)
    return 0


def new_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    result = scaffold_package(
        name=args.package,
        package_dir=package_path(cfg.dotfiles_dir, args.package),
        home=cfg.home,
        paths=args.paths,
        overwrite=bool(args.overwrite),
    )
    print(f"Created package {args.package} in {result.package_dir}")
    for f in result.adopted_files:
        print(f"  {f}")
    return 0


def publish_cmd(args: argparse.Namespace) -> int:
    cfg = _config(args)
    repo = _repo(cfg)
    repo.require()

    token = args.github_token or os.environ.get("GITHUB_TOKEN") or ""
    gh = GitHubClient(token)
    private = cfg.github.private if args.private is None else bool(args.private)
    info = gh.ensure_repo(
        owner=args.github_owner or cfg.github.owner,
        name=args.name or cfg.github.repo_name,
        private=private,
        description="Personal dotfiles",
    )
    if info.created:
        logger.info("created GitHub repository %s/%s", info.owner, info.name)

    repo.set_remote("origin", info.clone_url)
    if not args.skip_push:
        branch = repo.current_branch()
        repo.push(tokenized_https_remote(info.clone_url, token), branch)
        logger.info("pushed %s to %s", branch, info.html_url)

    print(info.html_url)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dotfiles", description="Track dotfiles in a bare git repository, install them with make")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More output (repeat for debug)")
    p.add_argument("--home", default=None, help="Home directory / work tree (env DOTFILES_HOME, default $HOME)")
    p.add_argument("--dotfiles-dir", default=None, help="Package directory (env DOTFILES_DIR, default ~/.dotfiles)")
    p.add_argument("--git-dir", default=None, help="Bare repository (env DOTFILES_GIT_DIR, default ~/.dotfiles.git)")
    p.add_argument("--config", default=None, help="Config file (env DOTFILES_CONFIG, default ~/.config/dotfiles/config.yaml)")
    sub = p.add_subparsers(dest="command", metavar="<command>")

    h = sub.add_parser("help", help="Show usage for dotfiles or one command")
    h.add_argument("topic", nargs="?", default=None, help="Command to describe")
    h.set_defaults(func=help_cmd)

    i = sub.add_parser("init", help="Create the bare repository tracking the home directory")
    i.set_defaults(func=init_cmd)

    g = sub.add_parser("git", add_help=False, help="Run git against the dotfiles repository")
    g.add_argument("git_args", nargs=argparse.REMAINDER, help="Arguments passed to git verbatim")
    g.set_defaults(func=git_cmd)

    f = sub.add_parser("files", help="List the home files each package installs")
    f.add_argument("packages", nargs="+", metavar="pkg")
    f.set_defaults(func=files_cmd)

    s = sub.add_parser("store", help="Add the packages' installed files to the repository and commit")
    s.add_argument("packages", nargs="+", metavar="pkg")
    s.add_argument("-m", "--message", default=None, help="Commit message (default: 'Store <pkgs>')")
    s.add_argument("--no-commit", action="store_true", help="Only stage the files")
    s.set_defaults(func=store_cmd)

    ins = sub.add_parser("install", help="Install packages unless that overwrites untracked or modified files")
    ins.add_argument("packages", nargs="+", metavar="pkg")
    ins.add_argument("--force", action="store_true", help="Install even over untracked or modified files")
    ins.set_defaults(func=install_cmd)

    ls = sub.add_parser("list", help="List available packages")
    ls.set_defaults(func=list_cmd)

    n = sub.add_parser("new", help="Create a package from files already in the home directory")
    n.add_argument("package", metavar="pkg")
    n.add_argument("paths", nargs="+", metavar="path", help="Files to adopt (relative to the home directory)")
    n.add_argument("--overwrite", action="store_true", help="Allow a non-empty package directory")
    n.set_defaults(func=new_cmd)

    pub = sub.add_parser("publish", help="Create a GitHub repository for the dotfiles and push to it")
    pub.add_argument("--name", default=None, help="Repository name (default from config: dotfiles)")
    pub.add_argument("--github-owner", default=None, help="GitHub owner (user or org); default: token's user")
    pub.add_argument("--github-token", default=None, help="GitHub token (or set env GITHUB_TOKEN)")
    pub.add_argument("--private", dest="private", action="store_true", default=None, help="Create a private repo")
    pub.add_argument("--public", dest="private", action="store_false", default=None, help="Create a public repo")
    pub.add_argument("--skip-push", action="store_true", help="Only create the repo and set origin")
    pub.set_defaults(func=publish_cmd)

    p.set_defaults(parser=p, commands=sub.choices)
    return p


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    head, passthrough = _split_git_passthrough(argv)

    parser = _build_parser()
    args = parser.parse_args(head)
    _configure_logging(args.verbose)

    if args.command is None:
        parser.print_help(sys.stderr)
        return 2
    if passthrough is not None:
        args.git_args = passthrough

    try:
        return int(args.func(args))
    except DotfilesError as e:
        logger.error("%s", e)
        return e.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
