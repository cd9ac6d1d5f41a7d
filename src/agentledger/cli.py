#!/usr/bin/env python3
"""
agentledger CLI — Offline command-line interface over a JSON ledger file.

The caller credential is the address of the keyfile passed with -k.

Commands:
    keygen              - Generate an agent keyfile
    register            - Register the keyfile's address under a domain
    update              - Change an agent's domain and/or address
    transfer            - Hand ownership of an agent to another address
    show                - Show an agent by id
    resolve             - Look an agent up by domain or address
    roles               - Add, remove or set role flags
    feedback            - Authorize a client to give feedback on a server
    request-validation  - Ask a validator to check a data hash
    respond             - Answer a pending validation
    pending             - Show a pending validation
    events              - Print the event log
"""

import argparse
import json
import sys
from typing import Optional

from agentledger.config import Settings
from agentledger.credentials import AgentKey
from agentledger.errors import InvalidInput, LedgerError
from agentledger.ledger import Ledger
from agentledger.logs import setup_structured_logging
from agentledger.models import Role, role_names

ROLE_CHOICES = {"server": Role.SERVER, "client": Role.CLIENT, "validator": Role.VALIDATOR}


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


def _caller(args) -> str:
    return AgentKey.load(args.keyfile).address


def _agent_dict(ledger: Ledger, agent_id: int) -> dict:
    info = ledger.identity.get(agent_id)
    roles = ledger.identity.get_roles(agent_id)
    return {
        "agent_id": info.agent_id,
        "domain": info.domain,
        "agent_address": info.agent_address,
        "owner": ledger.identity.get_owner(agent_id),
        "roles": int(roles),
        "role_names": role_names(roles),
    }


def _print_agent(d):
    print(f"🪪 Agent {d['agent_id']}")
    print(f"   Domain:  {d['domain']}")
    print(f"   Address: {d['agent_address']}")
    print(f"   Owner:   {d['owner']}")
    print(f"   Roles:   {', '.join(d['role_names']) or '-'} ({d['roles']})")


# ─── Commands ──────────────────────────────────────────────────────

def cmd_keygen(args, ledger):
    key = AgentKey()
    key.save(args.output)
    result = {"address": key.address, "public_key": key.public_key_hex, "keyfile": args.output}

    def human(d):
        print(f"✅ Generated key: {d['address']}")
        print(f"   Saved to: {d['keyfile']}")

    _output(result, args, human)
    return result


def cmd_register(args, ledger):
    caller = _caller(args)
    agent_id = ledger.identity.register(caller, args.domain, args.address or caller)
    result = _agent_dict(ledger, agent_id)

    def human(d):
        print(f"✅ Registered agent {d['agent_id']} at {d['domain']}")
        print(f"   Address: {d['agent_address']}")

    _output(result, args, human)
    return result


def cmd_update(args, ledger):
    ledger.identity.update(_caller(args), args.agent_id,
                           new_domain=args.domain, new_agent_address=args.address)
    result = _agent_dict(ledger, args.agent_id)
    _output(result, args, _print_agent)
    return result


def cmd_transfer(args, ledger):
    ledger.identity.transfer_ownership(_caller(args), args.agent_id, args.new_owner)
    result = _agent_dict(ledger, args.agent_id)
    _output(result, args, _print_agent)
    return result


def cmd_show(args, ledger):
    result = _agent_dict(ledger, args.agent_id)
    _output(result, args, _print_agent)
    return result


def cmd_resolve(args, ledger):
    if args.domain:
        info = ledger.identity.resolve_by_domain(args.domain)
    else:
        info = ledger.identity.resolve_by_address(args.address)
    result = _agent_dict(ledger, info.agent_id)
    _output(result, args, _print_agent)
    return result


def cmd_roles(args, ledger):
    caller = _caller(args)
    if args.action == "set":
        ledger.identity.set_roles(caller, args.agent_id, args.value)
    else:
        if args.role not in ROLE_CHOICES:
            raise InvalidInput(f"Unknown role {args.role!r}; choose from {', '.join(ROLE_CHOICES)}")
        role = ROLE_CHOICES[args.role]
        if args.action == "add":
            ledger.identity.add_role(caller, args.agent_id, role)
        else:
            ledger.identity.remove_role(caller, args.agent_id, role)
    result = _agent_dict(ledger, args.agent_id)
    _output(result, args, _print_agent)
    return result


def cmd_feedback(args, ledger):
    token = ledger.reputation.accept_feedback(_caller(args), args.client_id, args.server_id)
    result = {
        "client_id": args.client_id,
        "server_id": args.server_id,
        "feedback_auth_id": token,
    }

    def human(d):
        print(f"✅ Feedback authorized: client {d['client_id']} → server {d['server_id']}")
        print(f"   Token: {d['feedback_auth_id']}")

    _output(result, args, human)
    return result


def cmd_request_validation(args, ledger):
    entry = ledger.validation.request_validation(
        _caller(args), args.validator_id, args.server_id, args.data_hash,
    )
    result = {"data_hash": args.data_hash, **entry.to_dict()}

    def human(d):
        print(f"⏳ Validation requested for {d['data_hash']}")
        print(f"   Validator: {d['validator_id']}  Server: {d['server_id']}")
        print(f"   Expires:   {d['expires_at']}")

    _output(result, args, human)
    return result


def cmd_respond(args, ledger):
    entry = ledger.validation.get_validation_request(args.data_hash)
    ledger.validation.submit_validation_response(_caller(args), args.data_hash, args.response)
    result = {"data_hash": args.data_hash, "response": args.response,
              "validator_id": entry.validator_id, "server_id": entry.server_id}

    def human(d):
        print(f"✅ Validation {d['data_hash']} answered: {d['response']}/100")

    _output(result, args, human)
    return result


def cmd_pending(args, ledger):
    entry = ledger.validation.get_validation_request(args.data_hash)
    result = {
        "data_hash": args.data_hash,
        **entry.to_dict(),
        "expired": ledger.validation.is_expired(args.data_hash),
    }

    def human(d):
        status = "⌛ expired" if d['expired'] else "⏳ pending"
        print(f"{status}: {d['data_hash']}")
        print(f"   Validator: {d['validator_id']}  Server: {d['server_id']}")
        print(f"   Expires:   {d['expires_at']}")

    _output(result, args, human)
    return result


def cmd_events(args, ledger):
    events = ledger.events.history(event_type=args.type, since_sequence=args.since,
                                   limit=args.limit)
    result = {"count": len(events), "events": [e.to_dict() for e in events]}

    def human(d):
        print(f"📜 {d['count']} event(s)")
        for e in d['events']:
            fields = ", ".join(f"{k}={v}" for k, v in e['data'].items())
            print(f"   #{e['sequence']} {e['event_type']}({fields})")

    _output(result, args, human)
    return result


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentledger",
        description="agentledger — identity, reputation and validation registries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    parser.add_argument("--state", help="Ledger state file (default: $AGENTLEDGER_STATE_FILE)")
    parser.add_argument("--log-level", help="Log level (default: $AGENTLEDGER_LOG_LEVEL)")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    p = sub.add_parser("keygen", help="Generate an agent keyfile")
    p.add_argument("-o", "--output", default="identity.json", help="Keyfile path")

    p = sub.add_parser("register", help="Register an agent")
    p.add_argument("domain", help="Domain where the agent publishes its descriptor")
    p.add_argument("-k", "--keyfile", required=True, help="Caller keyfile")
    p.add_argument("-a", "--address", help="Agent address (defaults to the keyfile's)")

    p = sub.add_parser("update", help="Change an agent's domain and/or address")
    p.add_argument("agent_id", type=int)
    p.add_argument("-k", "--keyfile", required=True, help="Owner keyfile")
    p.add_argument("-d", "--domain", help="New domain")
    p.add_argument("-a", "--address", help="New agent address")

    p = sub.add_parser("transfer", help="Transfer ownership of an agent")
    p.add_argument("agent_id", type=int)
    p.add_argument("new_owner", help="Address of the new owner")
    p.add_argument("-k", "--keyfile", required=True, help="Owner keyfile")

    p = sub.add_parser("show", help="Show an agent")
    p.add_argument("agent_id", type=int)

    p = sub.add_parser("resolve", help="Resolve an agent by domain or address")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("-d", "--domain")
    group.add_argument("-a", "--address")

    p = sub.add_parser("roles", help="Manage role flags")
    p.add_argument("action", choices=["add", "remove", "set"])
    p.add_argument("agent_id", type=int)
    p.add_argument("role", nargs="?", help="server, client or validator (add/remove)")
    p.add_argument("-v", "--value", type=int, help="Whole bitmap 0-7 (set)")
    p.add_argument("-k", "--keyfile", required=True, help="Owner keyfile")

    p = sub.add_parser("feedback", help="Authorize feedback from a client to a server")
    p.add_argument("client_id", type=int)
    p.add_argument("server_id", type=int)
    p.add_argument("-k", "--keyfile", required=True, help="Server owner keyfile")

    p = sub.add_parser("request-validation", help="Request validation of a data hash")
    p.add_argument("validator_id", type=int)
    p.add_argument("server_id", type=int)
    p.add_argument("data_hash")
    p.add_argument("-k", "--keyfile", required=True, help="Server owner keyfile")

    p = sub.add_parser("respond", help="Answer a pending validation")
    p.add_argument("data_hash")
    p.add_argument("response", type=int, help="Score 0-100")
    p.add_argument("-k", "--keyfile", required=True, help="Validator keyfile")

    p = sub.add_parser("pending", help="Show a pending validation")
    p.add_argument("data_hash")

    p = sub.add_parser("events", help="Print the event log")
    p.add_argument("-t", "--type", help="Event type or glob pattern")
    p.add_argument("-s", "--since", type=int, help="First sequence number")
    p.add_argument("-n", "--limit", type=int, help="Only the last N events")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "register": cmd_register,
    "update": cmd_update,
    "transfer": cmd_transfer,
    "show": cmd_show,
    "resolve": cmd_resolve,
    "roles": cmd_roles,
    "feedback": cmd_feedback,
    "request-validation": cmd_request_validation,
    "respond": cmd_respond,
    "pending": cmd_pending,
    "events": cmd_events,
}

READ_ONLY = {"keygen", "show", "resolve", "pending", "events"}


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        settings = Settings.from_env()
        setup_structured_logging(args.log_level or settings.log_level)
        state_file = args.state or settings.state_file
        ledger = None if args.command == "keygen" else Ledger.open(state_file, settings=settings)

        result = COMMANDS[args.command](args, ledger)

        if args.command not in READ_ONLY:
            ledger.save(state_file)
        return result
    except FileNotFoundError as e:
        print(f"❌ File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"❌ Invalid data: {e}", file=sys.stderr)
        sys.exit(1)
    except LedgerError as e:
        print(f"❌ {e.code}: {e.detail}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
