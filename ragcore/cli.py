# FILE: ragcore/cli.py
"""
Command-line front end for ragcore.

Usage:
    ragcore init-db
    ragcore create-project NAME
    ragcore projects
    ragcore ingest PROJECT_ID FILE [--name NAME] [--provider openai]
    ragcore query PROJECT_ID "question" [--top-k 5] [--diverse] [--context]
    ragcore documents PROJECT_ID
    ragcore delete-document DOCUMENT_ID
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from ragcore.config import DATABASE_URL, DEFAULT_TOP_K
from ragcore.context import ContextAssembler
from ragcore.db import create_session_factory, init_db
from ragcore.embeddings import EmbeddingClient, build_default_registry
from ragcore.errors import InvalidInputError, RagError
from ragcore.service import RagService
from ragcore.store import ChunkStore

DEFAULT_PROVIDER = "openai"


def build_service(database_url: str = DATABASE_URL) -> RagService:
    session_factory = create_session_factory(database_url)
    init_db(session_factory)
    registry = build_default_registry()
    return RagService(ChunkStore(session_factory), EmbeddingClient(registry.resolve))


def _cmd_init_db(service: RagService, args) -> None:
    print("Database ready.")


def _cmd_create_project(service: RagService, args) -> None:
    project = service.create_project(args.name)
    print(f"Created project {project.id}: {project.name}")


def _cmd_projects(service: RagService, args) -> None:
    projects = service.list_projects()
    if not projects:
        print("No projects.")
        return
    for p in projects:
        embedded = f"{p.embedding_provider} ({p.embedding_dim}d)" if p.embedding_dim else "empty"
        print(f"  [{p.id}] {p.name}  {embedded}")


def _cmd_documents(service: RagService, args) -> None:
    docs = service.list_documents(args.project_id)
    if not docs:
        print("No documents.")
        return
    for d in docs:
        print(f"  [{d.id}] {d.name}  {d.chunk_count} chunks  {d.created_at:%Y-%m-%d %H:%M}")


def _cmd_ingest(service: RagService, args) -> None:
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidInputError(f"{path} is not UTF-8 text: {e}") from e
    result = service.ingest_document(
        args.project_id,
        args.name or path.name,
        text,
        args.provider,
        source_path=str(path.resolve()),
    )
    print(f"Ingested document {result.document_id} ({result.chunk_count} chunks)")


def _cmd_query(service: RagService, args) -> None:
    retrieve = service.retrieve_diverse if args.diverse else service.retrieve
    matches = retrieve(args.project_id, args.query, args.top_k, args.provider)
    if not matches:
        print("No matches.")
        return

    if args.context:
        print(ContextAssembler().assemble(matches).system_prompt)
        return

    for i, m in enumerate(matches, 1):
        preview = m.chunk.content[:200].replace("\n", " ")
        print(f"{i}. [{m.similarity:.4f}] {m.document_name} #{m.chunk.chunk_index}")
        print(f"   {preview}")


def _cmd_delete_document(service: RagService, args) -> None:
    service.delete_document(args.document_id)
    print(f"Deleted document {args.document_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragcore", description="Project-scoped document retrieval")
    parser.add_argument("--database-url", default=DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create tables")
    p.set_defaults(func=_cmd_init_db)

    p = sub.add_parser("create-project", help="Create a project")
    p.add_argument("name")
    p.set_defaults(func=_cmd_create_project)

    p = sub.add_parser("projects", help="List projects")
    p.set_defaults(func=_cmd_projects)

    p = sub.add_parser("documents", help="List a project's documents")
    p.add_argument("project_id", type=int)
    p.set_defaults(func=_cmd_documents)

    p = sub.add_parser("ingest", help="Chunk, embed and store a text file")
    p.add_argument("project_id", type=int)
    p.add_argument("file")
    p.add_argument("--name", help="Display name (default: file name)")
    p.add_argument("--provider", default=DEFAULT_PROVIDER, help="Embedding provider id")
    p.set_defaults(func=_cmd_ingest)

    p = sub.add_parser("query", help="Retrieve the most similar chunks")
    p.add_argument("project_id", type=int)
    p.add_argument("query")
    p.add_argument("--top-k", type=int, default=DEFAULT_TOP_K)
    p.add_argument("--provider", default=DEFAULT_PROVIDER, help="Embedding provider id")
    p.add_argument("--diverse", action="store_true", help="Re-rank for diversity")
    p.add_argument("--context", action="store_true", help="Print the assembled chat system prompt")
    p.set_defaults(func=_cmd_query)

    p = sub.add_parser("delete-document", help="Delete a document and its chunks")
    p.add_argument("document_id", type=int)
    p.set_defaults(func=_cmd_delete_document)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        service = build_service(args.database_url)
        args.func(service, args)
    except (RagError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
