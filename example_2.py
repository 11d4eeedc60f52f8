import json
from JsonToCSV import JsonNormalizer, TableRegistry, load_table

# Load your JSON Lines data, one movie per line
with open("movies.jsonl", "r") as f:
    records = [json.loads(line) for line in f if line.strip()]

output_dir = "output"

# Step 1: Register the root tables with their primary keys
with TableRegistry(output_dir) as registry:
    registry.get_or_create_table("movies", primary_key_field="id", skip_fields=["video"])
    registry.get_or_create_table("cast", primary_key_field="credit_id")

    # Step 2: Push records one at a time; nested objects become their own tables
    normalizer = JsonNormalizer(registry)
    for record in records:
        normalizer.normalize_record(record, "movies")
        for credit in record.get("credits", {}).get("cast", []):
            normalizer.normalize_record({**credit, "movieId": record["id"]}, "cast")

    print("Tables:", ", ".join(registry.table_names + registry.junction_names))

# Step 3: Read a table back
print(load_table(output_dir, "movies_genres").head())
