import json
from JsonToCSV import process_json_to_csv

# Load your JSON data (an object or an array of objects)
with open("example.json", "r") as f:
    json_data = json.load(f)

output_dir = "output"
root_table_name = "movies"

# Basic Example: Normalize JSON into CSV tables in one step
process_json_to_csv(json_data, output_dir, root_table_name=root_table_name, primary_key_field="id")

print(f"JSON data successfully normalized into {output_dir}/.")
