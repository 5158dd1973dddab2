from swapengine.main import run

run()
