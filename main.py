#!/usr/bin/env python3
"""cbratasks - command line front end for the task store."""

import argparse
import sys
from typing import List, Optional

from config import load_config
from application import TaskStore
from domain import Task, SystemClock
from monitoring import CbraTasksError


def _format_task(task: Task, now) -> str:
    mark = 'x' if task.completed else ' '
    parts = [f"[{mark}] {task.title}"]
    if task.tags:
        parts.append(' '.join(f"+{tag}" for tag in task.tags))
    due = task.due_string(now)
    if due:
        parts.append(f"({due})")
    if task.is_remote:
        parts.append('@remote')
    return '  '.join(parts) + f"  {task.id[:8]}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='cbratasks', description='Local-first task list with CalDAV sync')
    parser.add_argument('--config', help='Path to a TOML or JSON configuration file')

    commands = parser.add_subparsers(dest='command', required=True)

    add = commands.add_parser('add', help='Add a task, e.g. "Buy milk +shopping +1d"')
    add.add_argument('text', nargs='+')
    add.add_argument('--due', help='Due date: today, tomorrow, nextweek, 3d, 2w, 1m, YYYY-MM-DD or DD-MM-YYYY')
    add.add_argument('--tag', action='append', default=[])
    add.add_argument('--note')
    add.add_argument('--list', dest='list_name', help='local or remote')

    listing = commands.add_parser('list', help='Show active tasks')
    listing.add_argument('query', nargs='?', default='')

    commands.add_parser('today', help='Show incomplete tasks due today')

    done = commands.add_parser('done', help='Toggle completion of a task')
    done.add_argument('task_id')

    delete = commands.add_parser('delete', help='Delete a task')
    delete.add_argument('task_id')

    archive = commands.add_parser('archive', help='Archive completed tasks')
    archive.add_argument('task_id', nargs='?')

    commands.add_parser('archived', help='Show archived tasks')

    commands.add_parser('sync', help='Reconcile with the CalDAV collection')
    return parser


def _resolve_id(store: TaskStore, prefix: str) -> str:
    matches = [task.id for task in store.all_tasks() if task.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return prefix


def run(args: argparse.Namespace, store: TaskStore) -> int:
    now = store.clock.now()

    if args.command == 'add':
        text = ' '.join(args.text)
        if args.due or args.tag or args.note:
            task = store.create(text, tags=args.tag, due=args.due, note=args.note, list_name=args.list_name)
        else:
            task = store.add_from_input(text, list_name=args.list_name)
        print(_format_task(task, now))

    elif args.command == 'list':
        tasks = store.search(args.query) if args.query else store.all_tasks()
        for task in tasks:
            print(_format_task(task, now))

    elif args.command == 'today':
        for task in store.due_today():
            print(_format_task(task, now))

    elif args.command == 'done':
        task = store.toggle_complete(_resolve_id(store, args.task_id))
        print(_format_task(task, now))

    elif args.command == 'delete':
        task = store.delete(_resolve_id(store, args.task_id))
        print(f"Deleted: {task.title}")

    elif args.command == 'archive':
        if args.task_id:
            task = store.archive(_resolve_id(store, args.task_id))
            print(f"Archived: {task.title}")
        else:
            print(f"Archived {store.archive_all_completed()} tasks")

    elif args.command == 'archived':
        for task in store.archived_tasks():
            print(_format_task(task, now))

    elif args.command == 'sync':
        result = store.sync()
        print(f"Pulled {result.pulled}, pushed {result.pushed}, kept {result.kept_local} local")
        for warning in result.warnings:
            print(f"warning: {warning}", file=sys.stderr)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
        config.setup_logging()
        store = TaskStore(config, clock=SystemClock())
        return run(args, store)
    except KeyboardInterrupt:
        return 130
    except CbraTasksError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
