import argparse
import asyncio
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one LivingInsider scrape and save the rows to disk.")
    parser.add_argument("--start-url", default="https://www.livinginsider.com")
    parser.add_argument("--deal-type", default="")
    parser.add_argument("--category", default="")
    parser.add_argument("--keyword", default="")
    parser.add_argument("--price-min", default="")
    parser.add_argument("--price-max", default="")
    parser.add_argument("--max-pages", type=int, default=None)
    parser.add_argument("--max-results", type=int, default=50)
    parser.add_argument("--sample-every", type=int, default=1)
    parser.add_argument("--mode", default="auto", choices=("auto", "fast", "full"))
    parser.add_argument("--out", default="livinginsider.csv", help="CSV output path")
    parser.add_argument("--xlsx", action="store_true", help="also write an .xlsx next to the CSV")
    return parser.parse_args(argv)


async def run(args):
    from livingscraper.schemas import RunRequest
    from livingscraper.scrape import ScrapePipeline

    options = RunRequest(
        startUrl=args.start_url,
        dealType=args.deal_type,
        category=args.category,
        keyword=args.keyword,
        priceMin=args.price_min,
        priceMax=args.price_max,
        maxPages=args.max_pages,
        maxResults=args.max_results,
        sampleEvery=args.sample_every,
        preferFastMode=args.mode,
    )
    return await ScrapePipeline(options).run()


if __name__ == "__main__":
    args = parse_args()
    print("Running LivingInsider scrape...")
    result = asyncio.run(run(args))

    from livingscraper.export import to_csv, to_xlsx

    out = Path(args.out)
    out.write_bytes(to_csv(result.rows))
    print(f"Saved {len(result.rows)} rows to {out}")
    if args.xlsx:
        xlsx = out.with_suffix(".xlsx")
        xlsx.write_bytes(to_xlsx(result.rows))
        print(f"Saved {len(result.rows)} rows to {xlsx}")

    meta = result.meta
    print(
        f"Sources: {meta['sources_used']} | links: {meta['collected_links']} | "
        f"duplicates: {meta['duplicates_removed']} | errors: {len(meta['errors'])} | "
        f"avg quality: {meta['avg_quality_score']}%"
    )
