import argparse
import logging
import shutil

from config import load_config
from db import CatalogRepository, UserExerciseLogRepository
from seed_training_data import initialize_training_data


def export_logs(db_path: str, user_id: str, fmt: str, output_dir: str = ".") -> str:
    logs = UserExerciseLogRepository(db_path)
    if fmt == "csv":
        data = logs.export_csv(user_id)
    else:
        data = logs.export_json(user_id)
    out_path = f"{output_dir}/logs_{user_id}.{fmt}"
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(data)
    return out_path


def backup_db(db_path: str, backup_path: str) -> None:
    CatalogRepository(db_path).vacuum()
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def init_data(db_path: str) -> None:
    """Insert the training catalog unless sessions already exist."""
    catalog = CatalogRepository(db_path)
    if catalog.fetch_all("SELECT id FROM training_sessions LIMIT 1;"):
        print("Database already contains training sessions")
        return
    created = initialize_training_data(catalog)
    print(
        f"Inserted {len(created['training_sessions'])} sessions, "
        f"{len(created['exercises'])} exercises, {len(created['series'])} series"
    )


def serve(config_path: str) -> None:
    import uvicorn
    from rest_api import TrackerAPI

    config = load_config(config_path)
    api = TrackerAPI(db_path=config.db_path, page_size=config.default_page_size)
    uvicorn.run(api.app, host=config.host, port=config.port, log_level=config.log_level.lower())


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--config", default="tracker.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    init = sub.add_parser("init")
    init.add_argument("--db")

    exp = sub.add_parser("export")
    exp.add_argument("--db")
    exp.add_argument("--user", required=True)
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db")

    sub.add_parser("serve")

    args = parser.parse_args()
    config = load_config(args.config)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = getattr(args, "db", None) or config.db_path

    if args.cmd == "init":
        init_data(db_path)
    elif args.cmd == "export":
        print(export_logs(db_path, args.user, args.fmt, args.out))
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "serve":
        serve(args.config)


if __name__ == "__main__":
    main()
