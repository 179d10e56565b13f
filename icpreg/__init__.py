"""
icpreg - Point Cloud Registration using Iterative Closest Point (ICP)

A robust point cloud registration library featuring:
- Custom KD-Tree implementation for bounded nearest neighbor search
- Rigid (SE3) and similarity (Sim3) ICP with updates composed on the Lie group
- Point-to-point, point-to-point with scale and point-to-plane error metrics
- Huber M-estimator weighting for outlier handling
- Parallel correspondence search support

File I/O (``icpreg.io``, Open3D) and plotting (``icpreg.visualization``,
matplotlib) are imported separately.
"""

from .config import IcpParameters, RegistrationConfig, load_config
from .correspondences import Correspondence, Correspondences, find_correspondences
from .error_kernels import (ErrorKernel, PointToPlane, PointToPoint,
                            PointToPointSimilarity, get_error_kernel)
from .exceptions import (ConfigurationError, CorrespondenceStarvation, IcpError,
                         NumericalSingularity, RegistrationError)
from .icp import Icp, IcpResults, IcpState, build_icp
from .kdtree import KDTree
from .losses import HuberWeights, MEstimator, UniformWeights, get_mestimator
from .point_cloud import PointCloud
from .transforms import Transform, create_transformation_matrix

__version__ = "1.0.0"
__all__ = ["Icp", "IcpResults", "IcpState", "IcpParameters", "RegistrationConfig",
           "build_icp", "load_config", "KDTree", "PointCloud", "Transform",
           "create_transformation_matrix", "Correspondence", "Correspondences",
           "find_correspondences", "ErrorKernel", "PointToPoint", "PointToPointSimilarity",
           "PointToPlane", "get_error_kernel", "MEstimator", "HuberWeights",
           "UniformWeights", "get_mestimator", "IcpError", "ConfigurationError",
           "RegistrationError", "CorrespondenceStarvation", "NumericalSingularity"]
