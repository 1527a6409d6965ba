import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Unit quad in the z=0 plane, UV (u, v) == (x, y), bound to "origin" except
# vertex 2 which is split between both joints. Triangles are clockwise seen from +z.
MESH = """\
MD5Version 10
commandline "exportmodels quad"

numJoints 2
numMeshes 1

joints {
	"origin"	-1 ( 0 0 0 ) ( 0 0 0 )		// root
	"child"	0 ( 0 0 10 ) ( 0 0 0 )		// origin
}

mesh {
	// meshes: quad
	shader "models/test/quad"

	numverts 4
	vert 0 ( 0 0 ) 0 1
	vert 1 ( 1 0 ) 1 1
	vert 2 ( 1 1 ) 2 2
	vert 3 ( 0 1 ) 4 1

	numtris 2
	tri 0 0 3 2
	tri 1 0 2 1

	numweights 5
	weight 0 0 1 ( 0 0 0 )
	weight 1 0 1 ( 1 0 0 )
	weight 2 0 0.5 ( 1 1 0 )
	weight 3 1 0.5 ( 1 1 -10 )
	weight 4 0 1 ( 0 1 0 )
}
"""

# origin animates tz, child animates tx and qx.
ANIM = """\
MD5Version 10
commandline "exportanim quad"

numFrames 2
numJoints 2
frameRate 24
numAnimatedComponents 3

hierarchy {
	"origin"	-1 4 0	//
	"child"	0 9 1	// origin ( Tx Qx )
}

bounds {
	( 0 0 0 ) ( 1 1 0 )
	( 0 0 5 ) ( 3 10 16 )
}

baseframe {
	( 0 0 0 ) ( 0 0 0 )
	( 0 0 10 ) ( 0 0 0 )
}

frame 0 {
	0
	0 0
}

frame 1 {
	5
	2 0.7071067811865476
}
"""

# Nothing animated: every frame must equal the base frame.
STATIC_ANIM = """\
MD5Version 10
commandline ""
numFrames 2
numJoints 2
frameRate 30
numAnimatedComponents 0

hierarchy {
	"origin" -1 0 0
	"child" 0 0 0
}

bounds {
	( 0 0 0 ) ( 1 1 1 )
	( 0 0 0 ) ( 1 1 1 )
}

baseframe {
	( 1 2 3 ) ( 0.1 0.2 0.3 )
	( 0 0 10 ) ( 0 0.5 0 )
}

frame 0 {
}

frame 1 {
}
"""

# Root turns 90 degrees about z in frame 0, child sits 10 units along the root's x axis.
ROTATING_ANIM = """\
MD5Version 10
commandline ""
numFrames 1
numJoints 2
frameRate 24
numAnimatedComponents 1

hierarchy {
	"origin" -1 32 0
	"child" 0 0 0
}

bounds {
	( 0 0 0 ) ( 10 10 10 )
}

baseframe {
	( 0 0 0 ) ( 0 0 0 )
	( 10 0 0 ) ( 0 0 0 )
}

frame 0 {
	0.7071067811865476
}
"""

EMPTY_ANIM = (STATIC_ANIM
              .replace("numFrames 2", "numFrames 0")
              .replace("\t( 0 0 0 ) ( 1 1 1 )\n", "")
              .replace("\nframe 0 {\n}\n\nframe 1 {\n}\n", ""))
