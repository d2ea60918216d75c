#!/usr/bin/env python3
"""Entry point for the terra CLI."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List

from terracli import __version__
from terracli.app.auth.service import current_identity
from terracli.app.context_store import ContextStore
from terracli.app.credentials import CredentialStore
from terracli.app.groups import GroupOperations
from terracli.app.resources import ResourceRegistry
from terracli.app.services import ServiceFactory
from terracli.app.workspace.service import ROLES, WorkspaceOperations, require_workspace, resolve_for_command
from terracli.domain.context import PersistedContext
from terracli.domain.errors import (
    PassthroughError,
    TerraCliError,
    UserActionableError,
    ValidationError,
)
from terracli.domain.identity import Identity
from terracli.domain.resource import DEFAULT_CLONING, CloningPolicy, Resource, ResourceType, StewardshipType
from terracli.domain.workspace import CloudPlatform, Workspace
from terracli.ports.workspace_service import WorkspaceService
from terracli.settings import SETTINGS, load_config
from terracli.utils.telemetry import record_event, record_structured_event


def _build_services() -> ServiceFactory:
    return ServiceFactory(SETTINGS, load_config(SETTINGS))


@dataclass
class _Session:
    """Objects resolved once per command from the persisted context."""

    factory: ServiceFactory
    contexts: ContextStore
    context: PersistedContext
    credentials: CredentialStore
    identity: Identity
    workspace_service: WorkspaceService
    registry: ResourceRegistry
    workspaces: WorkspaceOperations
    # the command runs against an override that is not the current workspace
    scoped: bool = False

    @property
    def workspace(self) -> Workspace:
        return require_workspace(self.context)


def _open_session(args: argparse.Namespace) -> _Session:
    factory = _build_services()
    contexts = factory.contexts()
    persisted = contexts.load()
    credentials = factory.credentials(persisted)
    identity = current_identity(persisted, credentials)
    workspace_service = factory.workspace_service(persisted, credentials, identity)
    context = resolve_for_command(contexts, workspace_service, persisted, getattr(args, "workspace", None))
    scoped = context.transient and (persisted.workspace is None or persisted.workspace.id != context.workspace.id)
    registry = factory.registry(workspace_service, credentials, identity, context.workspace, scoped=scoped)
    workspaces = factory.workspaces(contexts, credentials, workspace_service, registry, identity)
    return _Session(
        factory, contexts, context, credentials, identity, workspace_service, registry, workspaces, scoped=scoped
    )


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _parse_pairs(values: Iterable[str] | None, flag: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValidationError(f"{flag} expects KEY=VALUE, got '{item}'")
        pairs[key] = value
    return pairs


def _workspace_lines(workspace: Workspace) -> List[str]:
    lines = [
        f"ID:                {workspace.user_facing_id}",
        f"UUID:              {workspace.id}",
        f"Cloud platform:    {workspace.cloud_platform.value}",
        f"Name:              {workspace.name or ''}",
        f"Description:       {workspace.description or ''}",
    ]
    if workspace.platform_project_id:
        lines.append(f"Google project:    {workspace.platform_project_id}")
    for key, value in sorted(workspace.properties.items()):
        lines.append(f"Property:          {key}={value}")
    return lines


def _resource_line(resource: Resource) -> str:
    return "\t".join(
        [resource.name, resource.resource_type.value, resource.stewardship.value, resource.cloning.value]
    )


# auth


def _auth_login_cmd(args: argparse.Namespace) -> int:
    factory = _build_services()
    contexts = factory.contexts()
    credentials = factory.credentials(contexts.load())
    identity = factory.auth(contexts, credentials).login(Path(args.file))
    print(f"Logged in as {identity.email}")
    return 0


def _auth_logout_cmd(args: argparse.Namespace) -> int:
    factory = _build_services()
    contexts = factory.contexts()
    credentials = factory.credentials(contexts.load())
    if factory.auth(contexts, credentials).logout():
        print("Logged out")
    else:
        print("Not logged in")
    return 0


def _auth_status_cmd(args: argparse.Namespace) -> int:
    factory = _build_services()
    contexts = factory.contexts()
    credentials = factory.credentials(contexts.load())
    status = factory.auth(contexts, credentials).status()
    if args.json:
        _print_json(status)
    elif status["logged_in"]:
        print(f"Logged in as {status['email']} (proxy group {status['proxy_group_email']}) on {status['server']}")
    else:
        print(f"Not logged in ({status['server']})")
    return 0


# server


def _server_list_cmd(args: argparse.Namespace) -> int:
    factory = _build_services()
    current = factory.contexts().load().server
    servers = [factory.config.servers[name] for name in sorted(factory.config.servers)]
    if args.json:
        _print_json([server.to_dict() | {"current": server.name == current} for server in servers])
        return 0
    for server in servers:
        marker = "*" if server.name == current else " "
        print(f"{marker} {server.name}\t{server.description}")
    return 0


def _server_set_cmd(args: argparse.Namespace) -> int:
    factory = _build_services()
    server = factory.config.server(args.name)
    contexts = factory.contexts()
    context = contexts.load()
    if context.server == server.name:
        print(f"Server already set to {server.name}")
        return 0
    if context.identity_key:
        factory.auth(contexts, factory.credentials(context)).logout()
    contexts.update(server=server.name, workspace=None)
    record_event(SETTINGS, "server.set", {"server": server.name})
    print(f"Server set to {server.name}; log in again with 'terra auth login'.")
    return 0


# workspace


def _workspace_create_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspace = session.workspaces.create(
        args.id,
        name=args.name,
        description=args.description,
        properties=_parse_pairs(args.property, "--property"),
        cloud_platform=CloudPlatform(args.platform),
    )
    if args.json:
        _print_json(workspace.to_dict())
    else:
        print("Workspace successfully created.")
        print("\n".join(_workspace_lines(workspace)))
    return 0


def _workspace_set_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspace = session.workspaces.set(args.id)
    print(f"Workspace successfully loaded: {workspace.user_facing_id}")
    return 0


def _workspace_describe_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspace = session.workspaces.describe(session.workspace)
    if args.json:
        _print_json(workspace.to_dict())
    else:
        print("\n".join(_workspace_lines(workspace)))
    return 0


def _workspace_list_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspaces = session.workspaces.list(args.offset, args.limit)
    if args.json:
        _print_json([workspace.to_dict() for workspace in workspaces])
        return 0
    current = session.context.workspace
    for workspace in workspaces:
        marker = "*" if current is not None and current.id == workspace.id else " "
        print(f"{marker} {workspace.user_facing_id}\t{workspace.name or ''}")
    return 0


def _workspace_update_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspace = session.workspaces.update(
        session.workspace,
        user_facing_id=args.new_id,
        name=args.name,
        description=args.description,
    )
    print("Workspace successfully updated.")
    print("\n".join(_workspace_lines(workspace)))
    return 0


def _workspace_delete_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    workspace = session.workspace
    session.workspaces.delete(workspace)
    print(f"Workspace successfully deleted: {workspace.user_facing_id}")
    return 0


def _workspace_duplicate_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    cloned = session.workspaces.duplicate(
        session.workspace,
        args.new_id,
        name=args.name,
        description=args.description,
    )
    if args.json:
        _print_json(cloned.to_dict())
    else:
        destination = cloned.destination_workspace
        print(f"Workspace successfully duplicated: {destination.user_facing_id} ({destination.id})")
        for outcome in cloned.outcomes:
            line = f"  {outcome.source.name}\t{outcome.result.value}"
            if outcome.message:
                line += f"\t{outcome.message}"
            print(line)
    # partial resource failures still leave a usable workspace behind
    return 0


def _workspace_add_user_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    session.workspaces.add_user(session.workspace, args.email, args.role)
    print(f"User added to workspace: {args.email} ({args.role.upper()})")
    return 0


def _workspace_remove_user_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    session.workspaces.remove_user(session.workspace, args.email, args.role)
    print(f"User removed from workspace: {args.email} ({args.role.upper()})")
    return 0


def _workspace_list_users_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    users = session.workspaces.list_users(session.workspace)
    if args.json:
        _print_json(users)
        return 0
    for email, roles in users.items():
        print(f"{email}\t{', '.join(roles)}")
    return 0


# resources


def _resource_spec(args: argparse.Namespace, stewardship: StewardshipType) -> Resource:
    cloning = CloningPolicy(args.cloning) if args.cloning else DEFAULT_CLONING[stewardship]
    return Resource(
        id="",
        name=args.name,
        resource_type=ResourceType(args.type),
        stewardship=stewardship,
        cloning=cloning,
        attributes=_parse_pairs(args.attr, "--attr"),
        description=args.description,
    )


def _resource_list_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    resources = session.registry.list(session.workspace)
    if args.json:
        _print_json([resource.to_dict() for resource in resources])
        return 0
    for resource in resources:
        print(_resource_line(resource))
    return 0


def _resource_describe_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    resource = session.registry.describe(session.workspace, args.name)
    if args.json:
        _print_json(resource.to_dict())
        return 0
    print(_resource_line(resource))
    print(f"Resolved: {session.registry.resolve(resource)}")
    if resource.description:
        print(f"Description: {resource.description}")
    return 0


def _resource_resolve_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    resource = session.registry.describe(session.workspace, args.name)
    print(session.registry.resolve(resource))
    return 0


def _resource_check_access_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    resource = session.registry.describe(session.workspace, args.name)
    if session.registry.check_access(resource):
        print(f"Access confirmed: {resource.resolve()}")
        return 0
    raise UserActionableError(f"The backing object for '{resource.name}' no longer exists: {resource.resolve()}")


def _resource_delete_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    resource = session.registry.describe(session.workspace, args.name)
    deleted = session.registry.delete(session.workspace, resource)
    print(f"{deleted.stewardship.value.capitalize()} resource successfully deleted: {deleted.name}")
    return 0


def _resource_add_ref_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    created = session.registry.add_referenced(session.workspace, _resource_spec(args, StewardshipType.REFERENCED))
    print(f"Referenced resource successfully added: {created.name} -> {created.resolve()}")
    return 0


def _resource_create_cmd(args: argparse.Namespace) -> int:
    session = _open_session(args)
    created = session.registry.create_controlled(session.workspace, _resource_spec(args, StewardshipType.CONTROLLED))
    print(f"Controlled resource successfully created: {created.name} -> {created.resolve()}")
    return 0


# groups


def _groups_for(args: argparse.Namespace) -> GroupOperations:
    factory = _build_services()
    context = factory.contexts().load()
    credentials = factory.credentials(context)
    return factory.groups(credentials, current_identity(context, credentials))


def _groups_list_cmd(args: argparse.Namespace) -> int:
    groups = _groups_for(args).list()
    if args.json:
        _print_json([group.to_dict() for group in groups])
        return 0
    for group in groups:
        print(f"{group.name}\t{group.email}\t{group.role}")
    return 0


def _groups_delete_cmd(args: argparse.Namespace) -> int:
    group = _groups_for(args).delete(args.name)
    if args.json:
        _print_json(group.to_dict())
    else:
        print(f"Terra group deleted: {group.name} ({group.email})")
    return 0


# app


def _app_execute_cmd(args: argparse.Namespace) -> int:
    command = list(args.tool_command or [])
    if command and command[0] == "--":
        command = command[1:]
    session = _open_session(args)
    launcher = session.factory.launcher(session.registry, session.credentials)
    launcher.execute(
        session.workspace,
        session.identity,
        command,
        _parse_pairs(args.env, "--env"),
        scoped=session.scoped,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="terra", description="Terra workspace command-line agent")
    parser.add_argument("--version", action="version", version=f"terra {__version__}")
    parser.add_argument(
        "--workspace",
        help="Workspace id or UUID to use for this command only; the current workspace is not changed",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    auth_cmd = sub.add_parser("auth", help="Manage the logged-in user")
    auth_sub = auth_cmd.add_subparsers(dest="auth_command", required=True)
    auth_login = auth_sub.add_parser("login", help="Log in with an authorized_user credential file")
    auth_login.add_argument("--file", required=True, help="Path to an authorized_user JSON file")
    auth_login.set_defaults(func=_auth_login_cmd)
    auth_logout = auth_sub.add_parser("logout", help="Log out and drop all stored credentials")
    auth_logout.set_defaults(func=_auth_logout_cmd)
    auth_status = auth_sub.add_parser("status", help="Show the logged-in user")
    auth_status.add_argument("--json", action="store_true")
    auth_status.set_defaults(func=_auth_status_cmd)

    server_cmd = sub.add_parser("server", help="Select the Terra deployment")
    server_sub = server_cmd.add_subparsers(dest="server_command", required=True)
    server_list = server_sub.add_parser("list", help="List known servers")
    server_list.add_argument("--json", action="store_true")
    server_list.set_defaults(func=_server_list_cmd)
    server_set = server_sub.add_parser("set", help="Switch server (logs out)")
    server_set.add_argument("name")
    server_set.set_defaults(func=_server_set_cmd)

    workspace_cmd = sub.add_parser("workspace", help="Manage workspaces")
    workspace_sub = workspace_cmd.add_subparsers(dest="workspace_command", required=True)
    ws_create = workspace_sub.add_parser("create", help="Create a workspace and make it current")
    ws_create.add_argument("--id", required=True, help="User-facing workspace id")
    ws_create.add_argument("--name")
    ws_create.add_argument("--description")
    ws_create.add_argument("--property", action="append", metavar="KEY=VALUE")
    ws_create.add_argument("--platform", choices=[p.value for p in CloudPlatform], default=CloudPlatform.GCP.value)
    ws_create.add_argument("--json", action="store_true")
    ws_create.set_defaults(func=_workspace_create_cmd)
    ws_set = workspace_sub.add_parser("set", help="Make an existing workspace current")
    ws_set.add_argument("--id", required=True, help="User-facing workspace id or UUID")
    ws_set.set_defaults(func=_workspace_set_cmd)
    ws_describe = workspace_sub.add_parser("describe", help="Describe the workspace")
    ws_describe.add_argument("--json", action="store_true")
    ws_describe.set_defaults(func=_workspace_describe_cmd)
    ws_list = workspace_sub.add_parser("list", help="List workspaces you can read")
    ws_list.add_argument("--offset", type=int, default=0)
    ws_list.add_argument("--limit", type=int, default=30)
    ws_list.add_argument("--json", action="store_true")
    ws_list.set_defaults(func=_workspace_list_cmd)
    ws_update = workspace_sub.add_parser("update", help="Update workspace properties")
    ws_update.add_argument("--new-id", dest="new_id")
    ws_update.add_argument("--name")
    ws_update.add_argument("--description")
    ws_update.set_defaults(func=_workspace_update_cmd)
    ws_delete = workspace_sub.add_parser("delete", help="Delete the workspace and its controlled resources")
    ws_delete.set_defaults(func=_workspace_delete_cmd)
    ws_duplicate = workspace_sub.add_parser("duplicate", help="Copy the workspace and its resources")
    ws_duplicate.add_argument("--new-id", dest="new_id", required=True)
    ws_duplicate.add_argument("--name")
    ws_duplicate.add_argument("--description")
    ws_duplicate.add_argument("--json", action="store_true")
    ws_duplicate.set_defaults(func=_workspace_duplicate_cmd)
    for name, handler, help_text in (
        ("add-user", _workspace_add_user_cmd, "Grant a role, inviting the user if needed"),
        ("remove-user", _workspace_remove_user_cmd, "Revoke a role"),
    ):
        role_cmd = workspace_sub.add_parser(name, help=help_text)
        role_cmd.add_argument("--email", required=True)
        role_cmd.add_argument("--role", required=True, type=str.upper, choices=ROLES)
        role_cmd.set_defaults(func=handler)
    ws_users = workspace_sub.add_parser("list-users", help="List users and their roles")
    ws_users.add_argument("--json", action="store_true")
    ws_users.set_defaults(func=_workspace_list_users_cmd)

    resource_cmd = sub.add_parser("resource", help="Manage workspace resources")
    resource_sub = resource_cmd.add_subparsers(dest="resource_command", required=True)
    res_list = resource_sub.add_parser("list", help="List resources")
    res_list.add_argument("--json", action="store_true")
    res_list.set_defaults(func=_resource_list_cmd)
    for name, handler, help_text in (
        ("describe", _resource_describe_cmd, "Describe a resource"),
        ("resolve", _resource_resolve_cmd, "Print the tool-usable identifier"),
        ("check-access", _resource_check_access_cmd, "Check the backing object of a referenced resource"),
        ("delete", _resource_delete_cmd, "Delete a resource"),
    ):
        named = resource_sub.add_parser(name, help=help_text)
        named.add_argument("--name", required=True)
        if name == "describe":
            named.add_argument("--json", action="store_true")
        named.set_defaults(func=handler)
    for name, handler, help_text in (
        ("add-ref", _resource_add_ref_cmd, "Add a referenced resource"),
        ("create", _resource_create_cmd, "Create a controlled resource"),
    ):
        spec_cmd = resource_sub.add_parser(name, help=help_text)
        spec_cmd.add_argument("--type", required=True, choices=[t.value for t in ResourceType])
        spec_cmd.add_argument("--name", required=True)
        spec_cmd.add_argument("--description")
        spec_cmd.add_argument("--cloning", choices=[c.value for c in CloningPolicy])
        spec_cmd.add_argument("--attr", action="append", metavar="KEY=VALUE")
        spec_cmd.set_defaults(func=handler)

    groups_cmd = sub.add_parser("groups", help="Manage identity-service groups")
    groups_sub = groups_cmd.add_subparsers(dest="groups_command", required=True)
    groups_list = groups_sub.add_parser("list", help="List the groups you belong to")
    groups_list.add_argument("--json", action="store_true")
    groups_list.set_defaults(func=_groups_list_cmd)
    groups_delete = groups_sub.add_parser("delete", help="Delete a group you administer")
    groups_delete.add_argument("--name", required=True)
    groups_delete.add_argument("--json", action="store_true")
    groups_delete.set_defaults(func=_groups_delete_cmd)

    app_cmd = sub.add_parser("app", help="Run tools against the workspace")
    app_sub = app_cmd.add_subparsers(dest="app_command", required=True)
    app_execute = app_sub.add_parser("execute", help="Run a command with workspace resources in its environment")
    app_execute.add_argument("--env", action="append", metavar="KEY=VALUE", help="Extra variable for the command")
    app_execute.add_argument("tool_command", nargs=argparse.REMAINDER)
    app_execute.set_defaults(func=_app_execute_cmd)

    return parser


def _report_failure(args: argparse.Namespace, exc: Exception, exit_code: int) -> None:
    record_structured_event(
        SETTINGS,
        "command.failed",
        payload={"command": getattr(args, "command", None), "error": type(exc).__name__, "message": str(exc)},
        level="error",
        status=str(exit_code),
        component="cli",
    )


def _print_internal_failure(exc: Exception) -> None:
    print("terra: the command failed because of an internal or remote error.", file=sys.stderr)
    detail = f"{type(exc).__name__}: {exc}"
    if exc.__cause__ is not None:
        detail += f" (caused by {exc.__cause__})"
    print(detail, file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except (PassthroughError, UserActionableError) as exc:
        _report_failure(args, exc, exc.exit_code)
        print(f"terra: {exc}", file=sys.stderr)
        return exc.exit_code
    except TerraCliError as exc:
        _report_failure(args, exc, exc.exit_code)
        _print_internal_failure(exc)
        return exc.exit_code
    except Exception as exc:  # noqa: BLE001
        _report_failure(args, exc, TerraCliError.exit_code)
        _print_internal_failure(exc)
        return TerraCliError.exit_code


if __name__ == "__main__":
    sys.exit(main())
