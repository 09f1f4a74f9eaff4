from aiohttp import ClientSession, ClientTimeout

from app.internal.env_settings import Settings


async def get_connection():
    timeout = ClientTimeout(total=Settings().app.google_books_timeout)
    async with ClientSession(timeout=timeout) as session:
        yield session
