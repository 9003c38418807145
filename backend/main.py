from __future__ import annotations

import logging
import os
import shlex
from typing import Any, Dict, List, Optional

from db import SupabaseError, get_db, ping
from knowledge_graph import ConceptGraphRepo, seed_concepts_if_missing
from llm import LLMClient, LLMError
from model_router import TASKS, classify_complexity, classify_domain, config_for
from repos import DailyDigestRepo, FlashcardRepo, NoteRepo, NotFoundError, UserRepo
from study_ai import StudyAssistant

LIST_LIMIT = int(os.getenv("CLI_LIST_LIMIT", "10"))


def print_help() -> None:
    print(
        "\nCommands:\n"
        "  user [user_id]           # show or switch the current user (default: dev user)\n"
        "  route <task> <text...>   # preview complexity, domain and model\n"
        "  ask <question...>\n"
        "  graph <concept> [depth]\n"
        "  flashcards <topic...>    # generate and save to the current user\n"
        "  summarize <text...>\n"
        "  notes [n]\n"
        "  addnote <text...>\n"
        "  digest                   # show today's digest\n"
        "  quit\n"
    )


def format_notes(notes: List[Dict[str, Any]]) -> None:
    for n in notes:
        tags = ", ".join(n.get("tags") or [])
        print(f"[{n['id'][:8]}] {n.get('title') or '(untitled)'}" + (f"  #{tags}" if tags else ""))


def format_graph(graph: Dict[str, Any]) -> None:
    names = {node["id"]: node["name"] for node in graph["nodes"]}
    print(f"{len(graph['nodes'])} concept(s), {len(graph['edges'])} relationship(s)")
    for node in graph["nodes"]:
        print(f"  * {node['name']} ({node['category']})")
    for edge in graph["edges"]:
        source = names.get(edge["source_id"], edge["source_id"])
        target = names.get(edge["target_id"], edge["target_id"])
        print(f"  {source} --{edge['relationship_type']}--> {target}")


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())

    print("Starting Dorothy study CLI...")
    db = get_db()
    ping(db)
    inserted = seed_concepts_if_missing(db)
    if inserted:
        print(f"Seeded {inserted} concept record(s).")

    user_repo = UserRepo(db)
    note_repo = NoteRepo(db)
    flashcard_repo = FlashcardRepo(db)
    digest_repo = DailyDigestRepo(db)
    concept_repo = ConceptGraphRepo(db)
    assistant = StudyAssistant(LLMClient())

    current_user: Optional[Dict[str, Any]] = None

    def _user() -> Dict[str, Any]:
        nonlocal current_user
        if current_user is None:
            current_user = user_repo.create_dev_user()
            print(f"Using {current_user.get('name')} ({current_user['id']})")
        return current_user

    print_help()

    while True:
        try:
            raw = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            return

        if not raw:
            continue

        try:
            parts = shlex.split(raw)
        except ValueError as exc:
            print(f"Could not parse command: {exc}")
            continue
        cmd = parts[0].lower()
        rest = " ".join(parts[1:]).strip()

        if cmd in ("quit", "exit"):
            print("Bye.")
            return

        if cmd in ("help", "?"):
            print_help()
            continue

        try:
            if cmd == "user":
                if len(parts) >= 2:
                    user = user_repo.get(parts[1])
                    if not user:
                        print(f"User not found: {parts[1]}")
                        continue
                    current_user = user
                profile = user_repo.profile_with_stats(_user()["id"])
                stats = profile["stats"]
                print(
                    f"{profile.get('name')}: notes={stats['notes_count']} "
                    f"flashcards={stats['flashcards_count']} quizzes={stats['quizzes_count']}"
                )
                continue

            if cmd == "route":
                if len(parts) < 3:
                    print(f"Usage: route <{'|'.join(TASKS)}> <text...>")
                    continue
                task, text = parts[1], " ".join(parts[2:])
                complexity = classify_complexity(text)
                config = config_for(task, complexity)
                print(f"complexity={complexity} domain={classify_domain(text)}")
                print(f"model={config.model} temperature={config.temperature} max_tokens={config.max_tokens}")
                continue

            if cmd == "ask":
                if not rest:
                    print("Usage: ask <question...>")
                    continue
                result = assistant.ask_question(rest)
                print(f"[{result['model']} | {result['complexity']} | {result['domain']}]\n")
                print(result["answer"])
                for citation in result["citations"]:
                    print(f"  [{citation['index']}] {citation['title']} {citation['url']}")
                continue

            if cmd == "graph":
                if len(parts) < 2:
                    print("Usage: graph <concept> [depth]")
                    continue
                depth = None
                if len(parts) >= 3:
                    try:
                        depth = int(parts[2])
                    except ValueError:
                        print("graph <concept> [depth] where depth is an integer")
                        continue
                format_graph(concept_repo.concept_graph(parts[1], depth).to_dict())
                continue

            if cmd == "flashcards":
                if not rest:
                    print("Usage: flashcards <topic...>")
                    continue
                cards = assistant.generate_flashcards(rest)
                if not cards:
                    print("No flashcards generated.")
                    continue
                saved = flashcard_repo.create_batch(_user()["id"], cards, rest)
                for card in saved:
                    print(f"Q: {card['front']}\nA: {card['back']}\n")
                print(f"Saved {len(saved)} flashcard(s).")
                continue

            if cmd == "summarize":
                if not rest:
                    print("Usage: summarize <text...>")
                    continue
                print(assistant.summarize_notes(rest))
                continue

            if cmd == "notes":
                n = LIST_LIMIT
                if len(parts) >= 2:
                    try:
                        n = int(parts[1])
                    except ValueError:
                        print("notes [n] where n is an integer")
                        continue
                notes = note_repo.list_for_user(_user()["id"])[:n]
                if not notes:
                    print("(no notes)")
                else:
                    format_notes(notes)
                continue

            if cmd == "addnote":
                if not rest:
                    print("Usage: addnote <text...>")
                    continue
                note = note_repo.create(_user()["id"], rest)
                print(f"Created note {note['id']}: {note['title']}")
                continue

            if cmd == "digest":
                digest = digest_repo.today(_user()["id"])
                if not digest:
                    print("No digest for today yet.")
                    continue
                print(digest["summary"])
                for topic in digest.get("review_topics") or []:
                    print(f"  - [{topic.get('priority')}] {topic.get('topic')}: {topic.get('reason')}")
                continue
        except (NotFoundError, ValueError) as exc:
            print(str(exc))
            continue
        except (SupabaseError, LLMError) as exc:
            print(f"Request failed: {exc}")
            continue

        print("Unknown command.")
        print_help()


if __name__ == "__main__":
    main()
