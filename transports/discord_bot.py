import logging
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.responder import Responder

log = logging.getLogger(__name__)

# Discord rejects messages longer than this
MESSAGE_LIMIT = 2000


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> List[str]:
    """Break ``text`` into pieces Discord will accept, preferring newline then space boundaries."""

    chunks: List[str] = []
    rest = text
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit + 1)
        if cut <= 0:
            cut = rest.rfind(" ", 0, limit + 1)
        if cut <= 0:
            cut = limit
        chunks.append(rest[:cut])
        rest = rest[cut:].lstrip("\n ")
    if rest:
        chunks.append(rest)
    return chunks


class DiscordTransport(commands.Bot):
    def __init__(self, responder: Responder, *, guild_id: Optional[int] = None):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(command_prefix=responder.prefix, intents=intents)
        self.responder = responder
        self.guild_id = guild_id

    async def setup_hook(self) -> None:
        self.tree.add_command(self._ping())
        if self.guild_id:
            guild = discord.Object(id=self.guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()

    def _ping(self) -> app_commands.Command:
        @app_commands.command(name="ping", description="Check that the puppet still moves")
        async def ping(interaction: discord.Interaction):
            await interaction.response.send_message(self.responder.ping())

        return ping

    async def on_ready(self):
        persona = self.responder.persona
        log.info("Logged in as %s, %s persona ready: %s", self.user, persona.name, persona.short)

    async def on_message(self, message: discord.Message):
        if not message or not message.content:
            return
        if message.author.bot:
            return
        bot_id = str(self.user.id) if self.user else None
        try:
            result = await self.responder.handle(
                scope_id=str(message.channel.id),
                raw_content=message.content,
                author_id=str(message.author.id),
                username=message.author.name,
                bot_id=bot_id,
            )
        except Exception as exc:
            log.exception("Responder error: %s", exc)
            return
        if not result:
            return
        try:
            for index, chunk in enumerate(split_message(result)):
                if index == 0:
                    await message.reply(chunk)
                else:
                    await message.channel.send(chunk)
        except discord.HTTPException as exc:
            log.warning("Failed to send reply in %s: %s", message.channel.id, exc)


async def run_discord_bot(responder: Responder, token: str, guild_id: Optional[int] = None):
    bot = DiscordTransport(responder, guild_id=guild_id)
    try:
        await bot.start(token)
    finally:
        await bot.close()
