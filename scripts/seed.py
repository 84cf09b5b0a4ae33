"""Seed demo users, posts and comments into the configured store.

Goes through the services, so IDs, timestamps and uniqueness rules are
exactly what the API would produce. With STORAGE_BACKEND=sql the tables
are dropped and recreated first; with json the documents are removed.
"""
import argparse
import asyncio
import random
import time
from pathlib import Path

from app.config import settings
from app.database import engine, reset_schema, session_scope
from app.dependencies import get_json_store
from app.schemas import PostCreate
from app.services import account_service, comment_service, post_service
from app.storage import SqlStore, Store

TOPICS = ["walks", "recipes", "books", "hiking", "coffee", "gardening", "music", "movies"]


async def _fill(store: Store, num_users: int, num_posts: int, comments_per_post: int) -> None:
    users = []
    for i in range(num_users):
        users.append(
            await account_service.register(
                store, f"user_{i:03d}", f"user_{i:03d}@example.com", "password"
            )
        )
    print(f"  Created {len(users)} users")

    total_comments = 0
    for i in range(num_posts):
        author = random.choice(users)
        topic = random.choice(TOPICS)
        post = await post_service.create_post(
            store,
            author["user_id"],
            PostCreate(title=f"Post {i}: notes on {topic}", contents=f"Some thoughts about {topic}."),
        )
        for _ in range(random.randint(0, comments_per_post)):
            commenter = random.choice(users)
            await comment_service.add_comment(
                store, post["post_id"], f"Nice one about {topic}!", commenter["user_id"]
            )
            total_comments += 1
    print(f"  Created {num_posts} posts, {total_comments} comments")


async def seed(small: bool = False) -> None:
    num_users = 5 if small else 30
    num_posts = 20 if small else 300
    comments_per_post = 2 if small else 6

    print(f"Seeding {settings.STORAGE_BACKEND} store: {num_users} users, {num_posts} posts")
    start = time.perf_counter()

    if settings.STORAGE_BACKEND == "json":
        for name in (settings.ACCOUNTS_FILE, settings.POSTS_FILE):
            Path(settings.DATA_DIR, name).unlink(missing_ok=True)
        await _fill(get_json_store(), num_users, num_posts, comments_per_post)
    else:
        await reset_schema()
        async with session_scope() as session:
            await _fill(SqlStore(session), num_users, num_posts, comments_per_post)
        await engine.dispose()

    print(f"Done in {time.perf_counter() - start:.1f}s")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the community board")
    parser.add_argument("--small", action="store_true", help="Seed a handful of records")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))
