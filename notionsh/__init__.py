"""
notionsh - Browse and edit a Notion workspace as a virtual filesystem.

Main API:
    import asyncio
    from notionsh.notion import NotionGateway
    from notionsh.vfs import NotionVFS

    async def main():
        async with NotionGateway(api_key="secret_...") as gateway:
            vfs = NotionVFS(gateway, cache_ttl_seconds=60)
            await vfs.refresh(force=True)

            for node in vfs.list("/pages"):
                print(node.name)

            text = await vfs.read_file("/pages/home/index.md")
            await vfs.write_file("/pages/home/index.md", text + "\\n\\nhello")

    asyncio.run(main())
"""

__version__ = "0.2.0"
