import argparse
import logging
import sys

from buffers import model_buffers
from errors import ConsistencyError, FormatError
from export import export_buffers
from reader import read_md5anim, read_md5mesh
from skeleton import bind_pose, check_hierarchy, playback_interval, resolve_frame

MESH_PATH = './models/zfat.md5mesh'


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Load an MD5 model, pose it and export or play it."
    )
    parser.add_argument("mesh", nargs="?", default=MESH_PATH, help="Path to the .md5mesh file")
    parser.add_argument("--anim", default=None, help="Path to an .md5anim file driving the mesh")
    parser.add_argument("--frame", type=int, default=None,
                        help="Animation frame to export (bind pose when omitted)")
    parser.add_argument("--export", default=None, metavar="OUT.npz",
                        help="Write renderer buffers to a compressed .npz file")
    parser.add_argument("--play", action="store_true", help="Play the animation in an Open3D window")
    parser.add_argument("--fps", type=float, default=None,
                        help="Playback rate (default: the clip's frameRate)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        model = read_md5mesh(args.mesh)
        anim = read_md5anim(args.anim) if args.anim else None
        if anim is not None:
            check_hierarchy(model, anim)
    except OSError as exc:
        logging.error("Cannot read input: %s", exc)
        return 1
    except (FormatError, ConsistencyError) as exc:
        logging.error("Invalid MD5 data: %s", exc)
        return 1

    logging.info("Loaded %s: %d joints, %d meshes", args.mesh, len(model.joints), len(model.meshes))
    if anim is not None:
        logging.info("Loaded %s: %d frames at %g fps", args.anim, anim.num_frames, anim.frame_rate)

    if args.export:
        if args.frame is not None:
            if anim is None:
                logging.error("--frame needs --anim")
                return 1
            try:
                pose = resolve_frame(anim, args.frame)
            except IndexError as exc:
                logging.error("%s", exc)
                return 1
        else:
            pose = bind_pose(model)
        export_buffers(args.export, model_buffers(model, pose))

    if args.play:
        if anim is None:
            logging.error("--play needs --anim")
            return 1
        if playback_interval(anim, args.fps) is None:
            return 1
        from player import play_md5_animation
        play_md5_animation(model, anim, fps=args.fps)

    return 0


if __name__ == '__main__':
    sys.exit(main())
