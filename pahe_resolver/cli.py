"""
AnimePahe Downloader - search a title, resolve each episode's media link and download it
"""
import os
import sys
import json
import logging
import argparse
import concurrent.futures

from tqdm import tqdm

from .config import Settings, configure_logging
from .download import MediaDownloader, episode_filename, sanitize_name
from .errors import PaheError
from .service import PaheService, build_pool

logger = logging.getLogger(__name__)


def in_range(number, start, end):
    return start <= number and (end is None or number <= end)


def quality_fragment(value):
    """Normalize 720 or 720P to the label fragment 720p"""
    value = str(value).strip().lower()
    return f"{value}p" if value.isdigit() else value


class BatchDownloader:
    """Resolves and downloads a range of episodes, one pooled session per step"""

    def __init__(self, service, downloader, quality="1080p", prefer_dub=False, links_only=False):
        self.service = service
        self.downloader = downloader
        self.resolution = quality_fragment(quality)
        self.audio = "eng" if prefer_dub else "jpn"
        self.links_only = links_only

    def process_episode(self, anime_session, episode, path):
        """Resolve one episode and download it; returns the resolved URL"""
        label, link = self.service.resolve_episode(anime_session, episode.session, self.resolution, self.audio)
        logger.info(f"Episode {episode.episode}: {label}")

        if self.links_only:
            print(json.dumps({"episode": episode.episode, "quality": label, "url": link.url}), flush=True)
        else:
            self.downloader.download(link.url, path, progress=False)
        return link.url

    def run(self, entry, start=1, end=None, out_dir="downloads", workers=1):
        """Process every episode in range; a failed episode does not stop the rest"""
        logger.info(f"Starting download for: {entry.title} ({'dubbed' if self.audio == 'eng' else 'subbed'})")
        episodes = [ep for ep in self.service.list_episodes(entry.session) if in_range(ep.episode, start, end)]
        if not episodes:
            logger.error("No episodes found in the specified range")
            return 0, 0

        dl_dir = os.path.join(out_dir, sanitize_name(entry.title))
        tasks = []
        for episode in episodes:
            path = os.path.join(dl_dir, episode_filename(entry.title, episode.episode))
            if not self.links_only and os.path.exists(path) and os.path.getsize(path) > 0:
                logger.info(f"Skipping existing episode {episode.episode}")
                continue
            tasks.append((episode, path))

        success = len(episodes) - len(tasks)
        with tqdm(total=len(tasks), desc="Episodes", disable=self.links_only) as pbar:
            with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
                future_to_ep = {
                    executor.submit(self.process_episode, entry.session, episode, path): episode
                    for episode, path in tasks
                }
                for future in concurrent.futures.as_completed(future_to_ep):
                    episode = future_to_ep[future]
                    try:
                        future.result()
                        success += 1
                    except PaheError as e:
                        logger.error(f"Episode {episode.episode} failed [{e.category}]: {e}")
                    except Exception as e:
                        logger.error(f"Exception while processing episode {episode.episode}: {str(e)}")
                    pbar.update(1)

        logger.info(f"Completed: {success}/{len(episodes)} episodes")
        return success, len(episodes)


def build_parser():
    parser = argparse.ArgumentParser(
        description="AnimePahe Downloader - Download anime episodes",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-n", "--name", required=True, help="Anime title to search for")
    parser.add_argument("--pick", type=int, default=1, help="Which search result to use (1-based)")
    parser.add_argument("-s", "--start", type=int, default=1, help="Start episode number")
    parser.add_argument("-e", "--end", type=int, help="End episode number (defaults to all available)")
    parser.add_argument("-q", "--quality", type=quality_fragment, default="1080p", help="Preferred quality label fragment (e.g., 1080p, 720p)")
    parser.add_argument("-d", "--dir", default="downloads", help="Output directory for downloads")
    parser.add_argument("-w", "--workers", type=int, help="Number of browser sessions / parallel episodes")
    parser.add_argument("--dub", action="store_true", help="Prefer dubbed version if available")
    parser.add_argument("--browser", help="Path to a Chromium-based browser executable")
    parser.add_argument("--search-only", action="store_true", help="Only perform a search and print results as JSON")
    parser.add_argument("--links-only", action="store_true", help="Print resolved links as JSON lines instead of downloading")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None):
    """Main entry point with argument parsing"""
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    configure_logging(logging.DEBUG if args.debug else logging.INFO, settings.log_file)
    if args.workers:
        settings.pool_size = args.workers
    settings = settings.with_browser(args.browser)

    logger.info("=== Starting Downloader ===")
    pool = build_pool(settings)
    exit_code = 0

    try:
        pool.open()
        service = PaheService(pool, settings)

        results = service.search(args.name)
        if args.search_only:
            print(json.dumps([entry.to_dict() for entry in results]))
            return 0
        if not results:
            logger.error("No results found for the given title")
            return 1
        if not 1 <= args.pick <= len(results):
            logger.error(f"--pick must be between 1 and {len(results)}")
            return 2

        entry = results[args.pick - 1]
        logger.info(f"Selected title: {entry.title}")

        batch = BatchDownloader(
            service, MediaDownloader(settings),
            quality=args.quality, prefer_dub=args.dub, links_only=args.links_only,
        )
        success, total = batch.run(entry, args.start, args.end, args.dir, workers=settings.pool_size)
        if success < total:
            exit_code = 1
        logger.info("=== Downloader finished ===")

    except KeyboardInterrupt:
        logger.info("Download interrupted by user")
        exit_code = 130
    except PaheError as e:
        logger.error(f"Fatal error [{e.category}]: {e}")
        exit_code = 1
    finally:
        pool.close(timeout=30)
        logger.info("Browser resources released")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
