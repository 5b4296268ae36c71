"""Example usage of gridmk as a Python library."""

from pathlib import Path

from gridmk.config import build_baseplate_config, build_box_config
from gridmk.geometry import render_to_file
from gridmk.manifest import write_manifest
from gridmk.observe import LoggingObserver
from gridmk.pipeline import generate_baseplate, generate_box

out = Path("example_output")
out.mkdir(exist_ok=True)

# Example 1: A 2x1 box, 6 units tall, with one divider and a label tab
box = build_box_config(width=2, depth=1, height=6, dividers_x=1, label_enabled=True)
result = generate_box(box)
render_to_file(result.descriptions[0], str(out / "box_2x1x6.scad"))
print(f"Box: {box.outer_width_mm}x{box.outer_depth_mm}mm")

# Example 2: Fill a 200x180mm drawer, half cells allowed, sockets matched to the box above
plate = build_baseplate_config(
    sizing_mode="fill_area_mm",
    target_width_mm=200,
    target_depth_mm=180,
    style="magnet",
)
result2 = generate_baseplate(plate, box=box, observer=LoggingObserver())
grid = result2.grid
render_to_file(result2.descriptions[0], str(out / "drawer_plate.scad"))
print(
    f"Drawer plate: {grid.grid_units_x}x{grid.grid_units_y} units, "
    f"padding {grid.padding_near_x}/{grid.padding_far_x}mm in X"
)

# Example 3: A 10x6 plate split for a 220x220mm bed, camelCase record as stored by a web client
record = {
    "width": 10,
    "depth": 6,
    "splitEnabled": True,
    "printerBedWidth": 220,
    "printerBedDepth": 220,
    "edgePattern": "dovetail",
    "edgeOverrides": [{"segmentX": 0, "segmentY": 0, "rightEdge": "female"}],
}
split_plate = build_baseplate_config(record)
result3 = generate_baseplate(split_plate, emit_workers=4)
for description in result3.descriptions:
    render_to_file(description, str(out / f"{description.artifact_name}.scad"))
write_manifest(result3.manifest, str(out / "manifest.json"))
print(f"Split plate: {result3.manifest['segmentsX']}x{result3.manifest['segmentsY']} segments")
