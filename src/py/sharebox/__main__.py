from .config import SharingConfig
from .server import run
from .services.files import SharingService
from .utils.logging import info


def main() -> None:
	config = SharingConfig.FromEnv()
	info("Starting Sharebox", Storage=str(config.storage))
	run(SharingService(config))


if __name__ == "__main__":
	main()

# EOF
