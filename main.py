# main.py
import sys
import argparse
import logging

from gltf_runtime import GltfError, GltfParser, ParserConfig

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Decode a glTF/GLB file and summarize its contents")
    parser.add_argument("model", help="path to a .gltf, .glb or .vrm file")
    parser.add_argument("--scale", type=float, default=100.0, help="uniform unit scale (default: 100)")
    parser.add_argument("--identity-basis", action="store_true",
                        help="keep glTF axes instead of converting to Z-up")
    parser.add_argument("--debug", action="store_true", help="verbose decoder logging")
    return parser.parse_args(argv)


def summarize(gltf: GltfParser):
    scenes = gltf.load_scenes() or []
    for scene in scenes:
        logging.info(f"Scene {scene.index} '{scene.name}': roots {scene.root_node_indices}")

    nodes = gltf.get_all_nodes() or []
    logging.info(f"{len(nodes)} nodes")

    for index in range(gltf.document.count('meshes')):
        static_mesh = gltf.load_static_mesh(index)
        if static_mesh is not None:
            triangles = sum(section.num_triangles for section in static_mesh.sections)
            logging.info(f"Static mesh {index} '{static_mesh.name}': "
                         f"{len(static_mesh.sections)} sections, {triangles} triangles")

    for node in nodes:
        if node.mesh_index is None or node.skin_index is None:
            continue
        skeletal_mesh = gltf.load_skeletal_mesh(node.mesh_index, node.skin_index, node.index)
        if skeletal_mesh is not None:
            logging.info(f"Skeletal mesh {node.mesh_index} (skin {node.skin_index}) on node "
                         f"'{node.name}': {len(skeletal_mesh.bone_names)} bones")


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.identity_basis:
        config = ParserConfig.identity(scale=args.scale, debug=args.debug)
    else:
        config = ParserConfig(scale=args.scale, debug=args.debug)

    try:
        gltf = GltfParser.from_file(args.model, config=config)
    except (OSError, ValueError, GltfError) as e:
        logging.critical(f"Unable to read {args.model}: {e}")
        return 1

    summarize(gltf)
    return 0


if __name__ == "__main__":
    sys.exit(main())
